"""Tests for FormLoader - YAML loading and validation."""

import json
import tempfile
from pathlib import Path

import pytest
from formwizard.engine.engine import FormEngine
from formwizard.engine.exceptions import ConfigurationError
from formwizard.engine.loader import BUNDLED_FORMS, FormLoader
from formwizard.engine.schema import Form


@pytest.fixture
def temp_dir():
    """Create temporary directory for test fixtures."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_form_yaml(temp_dir):
    """Create a sample form spec YAML file."""
    form_dir = temp_dir / "contact"
    form_dir.mkdir(parents=True)

    spec_content = """
name: Contact
description: Tell us who you are
stages:
  - name: details
    fields:
      - name: fullName
        required: true
      - name: email
        inputType: email
        validation:
          - type: Regex
            regex: '@'
            message: Enter a valid email address.
"""
    spec_file = form_dir / "spec.yaml"
    spec_file.write_text(spec_content)
    return temp_dir


def test_loader_loads_named_form(sample_form_yaml):
    """FormLoader reads <base>/<name>/spec.yaml."""
    loader = FormLoader(base_path=sample_form_yaml)

    form = loader.load_form('contact')

    assert isinstance(form, Form)
    assert form.name == 'Contact'
    assert form.description == 'Tell us who you are'
    assert [path for path in form.field_index()] == ['fullName', 'email']
    assert form.field_index()['email'].validation[0].regex == '@'


def test_loader_missing_form(temp_dir):
    """Missing spec raises FileNotFoundError."""
    loader = FormLoader(base_path=temp_dir)

    with pytest.raises(FileNotFoundError) as exc_info:
        loader.load_form('nonexistent')

    assert 'nonexistent' in str(exc_info.value)


def test_loader_missing_file(temp_dir):
    with pytest.raises(FileNotFoundError):
        FormLoader().load_file(temp_dir / 'missing.yaml')


def test_loader_reads_json(temp_dir, shipping_dict):
    """JSON documents load through the same parser."""
    path = temp_dir / 'shipping.json'
    path.write_text(json.dumps(shipping_dict))

    form = FormLoader().load_file(path)

    assert [stage.name for stage in form.stages] == ['route', 'cargo', 'contact']


def test_loader_invalid_yaml(temp_dir):
    """Unparseable YAML becomes a ConfigurationError."""
    path = temp_dir / 'broken.yaml'
    path.write_text("name: [unclosed\n")

    with pytest.raises(ConfigurationError) as exc_info:
        FormLoader().load_file(path)

    assert 'Cannot parse' in str(exc_info.value)


def test_loader_invalid_document(temp_dir):
    """Schema violations become a ConfigurationError naming the source."""
    path = temp_dir / 'invalid.yaml'
    path.write_text("name: Broken\nstages: []\n")

    with pytest.raises(ConfigurationError) as exc_info:
        FormLoader().load_file(path)

    assert 'invalid.yaml' in str(exc_info.value)


def test_load_dict_rejects_non_mapping():
    with pytest.raises(ConfigurationError):
        FormLoader().load_dict(['not', 'a', 'form'])


def test_loader_defaults_to_bundled_forms(monkeypatch):
    monkeypatch.delenv('FORMWIZARD_FORMS_PATH', raising=False)

    assert FormLoader().base_path == BUNDLED_FORMS


def test_loader_uses_environment_path(monkeypatch, sample_form_yaml):
    """FORMWIZARD_FORMS_PATH overrides the bundled forms directory."""
    monkeypatch.setenv('FORMWIZARD_FORMS_PATH', str(sample_form_yaml))

    assert FormLoader().load_form('contact').name == 'Contact'


def test_load_functions_for_bundled_form():
    functions = FormLoader().load_functions('freight_quote')

    assert 'freight_quote.cbm' in functions
    assert callable(functions['freight_quote.chargeable_weight'])


def test_load_functions_for_form_without_module(sample_form_yaml):
    assert FormLoader(base_path=sample_form_yaml).load_functions('contact') == {}


def test_engine_from_file(sample_form_yaml):
    engine = FormEngine.from_file(sample_form_yaml / 'contact' / 'spec.yaml')

    engine.change('email', 'nobody')

    assert engine.errors == {
        'fullName': 'Full Name is required.',
        'email': 'Enter a valid email address.',
    }


def test_engine_from_name_with_base_path(sample_form_yaml):
    engine = FormEngine.from_name('contact', base_path=sample_form_yaml)

    assert engine.form.name == 'Contact'
    assert len(engine.evaluator.functions) == 0
