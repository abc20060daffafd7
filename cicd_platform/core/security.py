"""
Security utilities for the CI/CD platform.

Provides:
- Command injection prevention for shelled-out tools
- Image reference and Git remote validation
- Secrets masking in logs
"""

import re
from typing import List

from .errors import SecurityError


class InputValidator:
    """
    Validates inputs that end up on a command line.
    """

    # Dangerous shell characters that could enable injection
    SHELL_DANGEROUS_CHARS = [";", "|", "&", "$", "`", "\n", "\r", "(", ")", "<", ">"]

    # repository[:tag] as accepted by docker, with optional registry host[:port]
    DOCKER_IMAGE_PATTERN = re.compile(
        r'^([a-z0-9.-]+(:[0-9]+)?/)?[a-z0-9]+([._/-][a-z0-9]+)*(:[a-zA-Z0-9_][a-zA-Z0-9._-]{0,127})?$'
    )

    GIT_REMOTE_PATTERN = re.compile(r'^(https://|git@)\S+$')

    @staticmethod
    def shell_exposed(command: str) -> str:
        """
        Return the characters of ``command`` that ``/bin/sh`` interprets.

        Single-quoted text (what ``shlex.quote`` produces) is literal and
        dropped. Inside double quotes only ``$`` and backticks survive. A
        backslash outside quotes keeps the escaped character exposed, so
        ``\\'`` cannot open a fake quote.

        Raises:
            SecurityError: On an unterminated quote
        """
        exposed = []
        quote = None
        i = 0
        while i < len(command):
            char = command[i]
            if quote == "'":
                if char == "'":
                    quote = None
            elif quote == '"':
                if char == "\\":
                    i += 1
                elif char == '"':
                    quote = None
                elif char in "$`":
                    exposed.append(char)
            elif char == "\\":
                exposed.append(command[i:i + 2])
                i += 1
            elif char in "'\"":
                quote = char
            else:
                exposed.append(char)
            i += 1

        if quote:
            raise SecurityError(f"Unterminated {quote} quote in command")
        return "".join(exposed)

    @staticmethod
    def validate_command(command: str, allowed_commands: List[str] = None) -> bool:
        """
        Validate a shell command to prevent injection attacks.

        Only the unquoted parts are checked, so values passed through
        ``shlex.quote`` (git identities, commit messages) may contain any
        character.

        Args:
            command: Command to validate
            allowed_commands: Whitelist of allowed command prefixes

        Returns:
            True if command is safe

        Raises:
            SecurityError: If command contains dangerous patterns
        """
        exposed = InputValidator.shell_exposed(command)
        for char in InputValidator.SHELL_DANGEROUS_CHARS:
            if char in exposed:
                raise SecurityError(
                    f"Dangerous character {char!r} detected in command"
                )

        if allowed_commands:
            command_start = command.split()[0] if command.split() else ""
            if not any(command_start.startswith(cmd) for cmd in allowed_commands):
                raise SecurityError(
                    f"Command '{command_start}' not in allowed list"
                )

        return True

    @staticmethod
    def validate_docker_image(image_ref: str) -> bool:
        """
        Validate a Docker image reference (e.g. "localhost:5000/app:test-12").

        Raises:
            SecurityError: If the reference is malformed
        """
        if not InputValidator.DOCKER_IMAGE_PATTERN.match(image_ref):
            raise SecurityError(f"Invalid Docker image reference: {image_ref}")
        return True

    @staticmethod
    def validate_git_remote(url: str) -> str:
        """
        Validate a Git remote URL.

        Returns:
            The stripped URL

        Raises:
            SecurityError: If the URL is empty or not https/ssh
        """
        url = (url or "").strip()
        if not url:
            raise SecurityError("URL cannot be empty")
        if not InputValidator.GIT_REMOTE_PATTERN.match(url):
            raise SecurityError(f"Remote URL must start with https:// or git@: {url}")
        if any(char in url for char in InputValidator.SHELL_DANGEROUS_CHARS):
            raise SecurityError(f"Suspicious characters in remote URL: {url}")
        return url


class SecretsMasker:
    """
    Masks secrets in logs and output to prevent exposure.
    """

    SECRET_PATTERNS = [
        (re.compile(r'(squ_[a-f0-9]{40})'), 'SONARQUBE_TOKEN'),
        (re.compile(r'(sqa_[a-f0-9]{40})'), 'SONARQUBE_TOKEN'),
        (re.compile(r'(ghp_[a-zA-Z0-9]{36})'), 'GITHUB_TOKEN'),
        (re.compile(r'(gho_[a-zA-Z0-9]{36})'), 'GITHUB_OAUTH_TOKEN'),
    ]

    SECRET_KEYS = ('password', 'token', 'secret', 'credential')

    @staticmethod
    def mask_secrets(text: str) -> str:
        """
        Mask secrets in text.

        Args:
            text: Text that may contain secrets

        Returns:
            Text with secrets masked
        """
        masked = text

        for pattern, name in SecretsMasker.SECRET_PATTERNS:
            masked = pattern.sub(f'***{name}***', masked)

        # key=value and "-p value" style arguments
        masked = re.sub(
            r'(password|token|secret)([\s=:]+)[^\s]+',
            r'\1\2***REDACTED***',
            masked,
            flags=re.IGNORECASE,
        )
        masked = re.sub(r'(\s-p\s+)[^\s]+', r'\1***REDACTED***', masked)

        return masked

    @staticmethod
    def mask_dict(data: dict) -> dict:
        """Recursively mask secrets in a dictionary."""
        masked = {}

        for key, value in data.items():
            if any(word in key.lower() for word in SecretsMasker.SECRET_KEYS):
                masked[key] = '***REDACTED***'
            elif isinstance(value, dict):
                masked[key] = SecretsMasker.mask_dict(value)
            elif isinstance(value, str):
                masked[key] = SecretsMasker.mask_secrets(value)
            else:
                masked[key] = value

        return masked


def mask_secrets(text: str) -> str:
    """Mask secrets in text."""
    return SecretsMasker.mask_secrets(text)
