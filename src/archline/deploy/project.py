"""Project directory checks and command environment."""

from pathlib import Path

from archline.core.config import AwsConfig
from archline.core.errors import ValidationError
from archline.core.log import logger


def validate_project(project_dir: Path, required_files: list[str]) -> Path:
    """Check that project_dir looks like a CDK project.

    Returns:
        The resolved project directory

    Raises:
        ValidationError: If the directory or a required file is missing
    """
    resolved = project_dir.expanduser().resolve()
    if not resolved.is_dir():
        raise ValidationError(f"Invalid CDK project directory: {resolved}")
    missing = [f for f in required_files if not (resolved / f).is_file()]
    if missing:
        raise ValidationError(
            f"Invalid CDK project directory: {resolved}. Make sure the "
            f"directory contains a valid CDK project with "
            f"{' and '.join(required_files)} "
            f"(missing: {', '.join(missing)})."
        )
    return resolved


def read_diagram(path: Path | None) -> str:
    """Diagram text, or an empty string when absent or unreadable."""
    if path is None:
        return ""
    try:
        content = path.expanduser().read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        logger.warning(f"Could not read diagram file: {path}")
        logger.warning("Proceeding without original diagram context.")
        return ""
    logger.info(f"Read original PlantUML diagram from {path}")
    return content


def command_env(aws: AwsConfig) -> dict[str, str]:
    """Environment overrides forwarded to cdk commands."""
    env = {}
    if aws.profile:
        env["AWS_PROFILE"] = aws.profile
        logger.info(f"Using AWS profile: {aws.profile}")
    env["AWS_REGION"] = aws.region
    logger.info(f"Using AWS region: {aws.region}")
    return env
