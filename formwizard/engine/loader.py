"""FormLoader - loads and validates form configuration documents."""

import importlib
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from .exceptions import ConfigurationError
from .schema import Form

logger = logging.getLogger(__name__)

BUNDLED_FORMS = Path(__file__).resolve().parent.parent / "forms"


class FormLoader:
    """
    Loads form configuration documents from YAML or JSON files.

    Validates structure using Pydantic models.
    """

    def __init__(self, base_path: Optional[Union[str, Path]] = None):
        """
        Initialize loader.

        Args:
            base_path: Directory holding one sub-directory per form
                (default: FORMWIZARD_FORMS_PATH, then the bundled forms)
        """
        if base_path is None:
            base_path = os.environ.get('FORMWIZARD_FORMS_PATH') or BUNDLED_FORMS
        self.base_path = Path(base_path)

    def load_form(self, form_name: str) -> Form:
        """
        Load a named form from ``<base_path>/<form_name>/spec.yaml``.

        Args:
            form_name: Name of form (e.g., 'freight_quote')

        Returns:
            Validated Form instance

        Raises:
            FileNotFoundError: If the spec file doesn't exist
            ConfigurationError: If the document doesn't match the schema
        """
        spec_path = self.base_path / form_name / "spec.yaml"

        if not spec_path.exists():
            raise FileNotFoundError(f"Form spec not found: {spec_path}")

        return self.load_file(spec_path)

    def load_file(self, path: Union[str, Path]) -> Form:
        """
        Load a form document from a YAML or JSON file.

        YAML is a superset of JSON, so both go through the YAML parser.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigurationError: If the file can't be parsed or validated
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Form spec not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Cannot parse {path}: {e}") from e

        logger.debug(f"Loaded form document from {path}")
        return self.load_dict(data, source=str(path))

    def load_dict(self, data: Any, source: str = '<dict>') -> Form:
        """
        Validate an already-parsed document.

        Raises:
            ConfigurationError: If the document doesn't match the schema
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"Form document in {source} must be a mapping")
        try:
            return Form.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid form document in {source}:\n{e}") from e

    def load_functions(self, form_name: str) -> Dict[str, Callable[..., Any]]:
        """
        Import the host functions bundled with a form.

        Looks for a ``FUNCTIONS`` mapping in ``formwizard.forms.<form_name>``.

        Returns:
            Mapping of registered name to callable; empty if the form ships none
        """
        module_name = f'formwizard.forms.{form_name}'
        try:
            module = importlib.import_module(module_name)
        except ModuleNotFoundError as e:
            if e.name != module_name:
                raise
            logger.debug(f"No function module for form '{form_name}'")
            return {}
        return dict(getattr(module, 'FUNCTIONS', {}))
