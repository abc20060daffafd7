"""
Jenkins CI/CD platform toolkit.

Provisions the Jenkins/SonarQube/registry/monitoring stack, runs the
branch-gated build pipeline locally and ships the demo microservice the
pipeline builds.
"""

__version__ = "1.0.0"
