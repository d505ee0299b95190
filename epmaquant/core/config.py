"""
Configuration management for epmaquant.

Provides utilities for loading and validating YAML/JSON configuration files
holding estimator tolerances and the choice of iteration algorithm.
"""

import json
from pathlib import Path
from typing import Dict, Any, Union
import logging

import yaml

from epmaquant.core.logging_config import VALID_LOG_LEVELS

logger = logging.getLogger(__name__)


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters
    ----------
    config_path : str or Path
        Path to configuration file (.yaml, .yml, or .json)

    Returns
    -------
    dict
        Configuration dictionary

    Raises
    ------
    FileNotFoundError
        If config file does not exist
    ValueError
        If file format is not supported
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    suffix = config_path.suffix.lower()

    with open(config_path, "r") as f:
        if suffix in [".yaml", ".yml"]:
            config = yaml.safe_load(f)
        elif suffix == ".json":
            config = json.load(f)
        else:
            raise ValueError(
                f"Unsupported config file format: {suffix}. " "Use .yaml, .yml, or .json"
            )

    logger.info(f"Loaded configuration from {config_path}")
    return config


def validate_estimator_config(config: Dict[str, Any]) -> bool:
    """
    Validate estimator configuration structure.

    Parameters
    ----------
    config : dict
        Configuration dictionary

    Returns
    -------
    bool
        True if valid

    Raises
    ------
    ValueError
        If configuration is invalid
    """
    if "estimator" not in config:
        raise ValueError("Configuration must contain 'estimator' section")

    est = config["estimator"] or {}

    if "epsilon" in est:
        if not 0.0 <= float(est["epsilon"]) < 1.0:
            raise ValueError("Estimator epsilon must be in [0, 1)")

    if "max_iterations" in est:
        if int(est["max_iterations"]) < 1:
            raise ValueError("Estimator max_iterations must be at least 1")

    if "min_weight" in est:
        if not 0.0 <= float(est["min_weight"]) < 1.0:
            raise ValueError("Estimator min_weight must be in [0, 1)")

    if "iteration" in est:
        # Deferred to avoid a circular import through the quant package
        from epmaquant.quant.iteration import IterationStepFactory

        valid_steps = IterationStepFactory.list_steps()
        if est["iteration"] not in valid_steps:
            raise ValueError(
                f"Invalid iteration algorithm: {est['iteration']}. " f"Must be one of: {valid_steps}"
            )

    if "rules" in est:
        from epmaquant.quant.rules import RULE_TYPES

        for rule in est["rules"] or []:
            if not isinstance(rule, dict) or rule.get("type") not in RULE_TYPES:
                raise ValueError(f"Invalid unmeasured-element rule: {rule}. Types: {list(RULE_TYPES)}")

    if "logging" in config:
        log_config = config["logging"] or {}
        levels = {"": log_config.get("level", "INFO")}
        sub_levels = log_config.get("levels") or {}
        if not isinstance(sub_levels, dict):
            raise ValueError("Logging levels must map logger names to levels")
        levels.update(sub_levels)
        for name, level in levels.items():
            if str(level).upper() not in VALID_LOG_LEVELS:
                where = f" for {name}" if name else ""
                raise ValueError(
                    f"Invalid logging level{where}: {level}. Must be one of: {VALID_LOG_LEVELS}"
                )

    return True


def save_config(config: Dict[str, Any], config_path: Union[str, Path]) -> None:
    """
    Save configuration to YAML or JSON file.

    Parameters
    ----------
    config : dict
        Configuration dictionary
    config_path : str or Path
        Path to output file. Unknown suffixes are written as YAML.
    """
    config_path = Path(config_path)
    suffix = config_path.suffix.lower()

    if suffix == ".json":
        with open(config_path, "w") as f:
            json.dump(config, f, indent=2)
    else:
        if suffix not in [".yaml", ".yml"]:
            config_path = config_path.with_suffix(".yaml")
        with open(config_path, "w") as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved configuration to {config_path}")
