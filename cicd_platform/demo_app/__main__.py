"""Run the demo service: python -m cicd_platform.demo_app"""

from ..core.logger import setup_logging
from .app import serve

if __name__ == "__main__":
    setup_logging()
    serve()
