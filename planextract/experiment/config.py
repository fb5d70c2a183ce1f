"""
Configuration management for extraction runs.

Supports:
- Loading base config from YAML
- Merging experiment overrides
- Config validation with Pydantic
- Config hashing for reproducibility
"""

import hashlib
import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..errors import ConfigurationError
from ..parse.models import DocumentType

logger = logging.getLogger(__name__)

DEFAULT_BASE_CONFIG = Path("configs/base.yaml")


# =============================================================================
# Pydantic Config Models
# =============================================================================


class ExtractionConfig(BaseModel):
    """LLM extraction settings."""

    model: str = "llama3-70b"
    provider: Optional[str] = None  # groq | openai | anthropic | google (auto-detected if None)
    temperature: float = Field(default=0.2, ge=0, le=2)
    max_tokens: int = 4096
    max_prompt_chars: int = 8000  # Document text budget inside the prompt
    timeout_seconds: float = 120.0

    # Rate limiting to avoid TPM/RPM caps
    delay_between_calls: float = 0.0  # Seconds to wait between API calls
    requests_per_minute: Optional[int] = None  # Max requests per minute (None = no limit)
    max_retries: int = 0  # SDK-level retries; 0 leaves retry policy to the caller


class ValidationConfig(BaseModel):
    """Validation and confidence settings."""

    required_sections: list[str] = Field(default_factory=lambda: ["summary", "goals", "bmps"])
    max_issues_per_section: int = 3
    low_confidence_threshold: int = 75


class AccuracyConfig(BaseModel):
    """Accuracy harness settings."""

    data_dir: str = "data/plans"
    ground_truth_dir: str = "configs/ground_truth"
    results_dir: str = "data/results"
    match_threshold: float = Field(default=0.7, ge=0, le=1)
    min_required_accuracy: float = 75.0
    plans: list[str] = Field(default_factory=list)  # Empty = every plan found in data_dir
    forced_type: Optional[str] = "watershed_plan"


class ExperimentMetadata(BaseModel):
    """Experiment metadata (from override configs)."""

    name: Optional[str] = None
    description: Optional[str] = None
    hypothesis: Optional[str] = None


class PipelineConfig(BaseModel):
    """Complete pipeline configuration."""

    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    accuracy: AccuracyConfig = Field(default_factory=AccuracyConfig)
    experiment: ExperimentMetadata = Field(default_factory=ExperimentMetadata)

    def config_hash(self) -> str:
        """
        Generate hash of config for reproducibility tracking.

        Returns:
            SHA256 hash of serialized config (first 12 chars)
        """
        config_json = self.model_dump_json(exclude={"experiment"})
        return hashlib.sha256(config_json.encode()).hexdigest()[:12]


# =============================================================================
# Config Loading Functions
# =============================================================================


def load_yaml(path: Union[str, Path]) -> dict[str, Any]:
    """Load YAML file and return as dict."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Override values take precedence. Nested dicts are merged recursively.
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    base_path: Optional[Union[str, Path]] = None,
) -> PipelineConfig:
    """
    Load pipeline configuration from YAML.

    An override config (one with an 'experiment' key) is merged onto the base
    config. If base_path is not provided, looks for base.yaml next to the
    override's parent directory, then configs/base.yaml.

    Args:
        config_path: Path to config file (base or override). If None, configs/base.yaml
            is used when present, otherwise defaults.
        base_path: Optional explicit path to base config

    Returns:
        PipelineConfig with all settings resolved

    Raises:
        ConfigurationError: If the merged config does not validate
    """
    if config_path is None:
        if base_path is None and DEFAULT_BASE_CONFIG.exists():
            base_path = DEFAULT_BASE_CONFIG
        config_dict = load_yaml(base_path) if base_path else {}
    else:
        config_path = Path(config_path)
        config_dict = load_yaml(config_path)

        if "experiment" in config_dict:
            if base_path is None:
                base_path = config_path.parent.parent / "base.yaml"
                if not base_path.exists():
                    base_path = DEFAULT_BASE_CONFIG
            base_path = Path(base_path)

            if base_path.exists():
                config_dict = deep_merge(load_yaml(base_path), config_dict)
                logger.info(f"Merged config from {config_path} with base {base_path}")
            else:
                logger.warning(f"Base config not found at {base_path}, using override only")

    try:
        config = PipelineConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config: {e}") from e

    logger.info(f"Loaded config: {config.experiment.name or 'base'} (hash: {config.config_hash()})")
    return config


def save_config(config: PipelineConfig, output_path: Union[str, Path]) -> Path:
    """Save resolved config to YAML file."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved config to {output_path}")
    return output_path


# =============================================================================
# Config Validation
# =============================================================================


def validate_config(config: PipelineConfig) -> list[str]:
    """
    Validate config and return list of warnings/issues.

    Returns:
        List of warning messages (empty if all good)
    """
    warnings = []

    if config.extraction.max_prompt_chars < 1000:
        warnings.append(
            f"max_prompt_chars={config.extraction.max_prompt_chars} is very low, "
            "most of the document will be truncated"
        )

    if config.extraction.provider and config.extraction.provider.lower() not in (
        "groq", "openai", "anthropic", "google"
    ):
        warnings.append(f"Unknown provider: {config.extraction.provider}")

    if not config.validation.required_sections:
        warnings.append("No required sections configured, structure check always passes")

    if not 0 <= config.validation.low_confidence_threshold <= 100:
        warnings.append(
            f"low_confidence_threshold={config.validation.low_confidence_threshold} "
            "is outside 0-100"
        )

    gt_dir = Path(config.accuracy.ground_truth_dir)
    if not gt_dir.exists():
        warnings.append(f"Ground truth directory not found: {gt_dir}")

    if config.accuracy.forced_type:
        valid = {t.value for t in DocumentType}
        if config.accuracy.forced_type not in valid:
            warnings.append(
                f"Invalid forced_type: {config.accuracy.forced_type}. "
                f"Valid options: {sorted(valid)}"
            )

    return warnings
