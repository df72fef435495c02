"""Tests for stage validation."""

import pytest
from formwizard.engine.expressions import ExpressionEvaluator, FunctionRegistry
from formwizard.engine.schema import Field, Form, flatten
from formwizard.engine.validator import validate_stage, visible_errors
from formwizard.engine.values import apply_change, initialize
from formwizard.utils.diagnostics import DiagnosticCollector


@pytest.fixture
def evaluator():
    return ExpressionEvaluator(FunctionRegistry(), diagnostics=DiagnosticCollector())


def make_field(**kwargs) -> Field:
    return Field.model_validate(kwargs)


def rule(type_, message='bad', **kwargs):
    return dict(type=type_, message=message, **kwargs)


class TestRequired:
    """Tests for the required flag."""

    def test_empty_required_field_reported(self, evaluator):
        field = make_field(name='email', label='Email address', required=True)

        errors = validate_stage([field], {'email': ''}, evaluator)

        assert errors == {'email': 'Email address is required.'}

    def test_label_derived_from_name(self, evaluator):
        field = make_field(name='cargoWeight', required=True)

        assert validate_stage([field], {'cargoWeight': None}, evaluator) == {
            'cargoWeight': 'Cargo Weight is required.',
        }

    def test_zero_satisfies_required(self, evaluator):
        field = make_field(name='count', required=True)

        assert validate_stage([field], {'count': 0}, evaluator) == {}

    def test_empty_multiselect_fails_required(self, evaluator):
        field = make_field(name='tags', inputType='multiselect', required=True)

        assert 'tags' in validate_stage([field], {'tags': []}, evaluator)


class TestRules:
    """Tests for declarative rule types."""

    def test_regex(self, evaluator):
        field = make_field(name='code', validation=[rule('Regex', 'Digits only.', regex=r'^\d+$')])

        assert validate_stage([field], {'code': '12a'}, evaluator) == {'code': 'Digits only.'}
        assert validate_stage([field], {'code': '123'}, evaluator) == {}

    def test_regex_skips_empty_value(self, evaluator):
        field = make_field(name='code', validation=[rule('Regex', regex=r'^\d+$')])

        assert validate_stage([field], {'code': ''}, evaluator) == {}

    def test_invalid_regex_passes_and_is_recorded(self, evaluator):
        field = make_field(name='code', validation=[rule('Regex', regex='[unclosed')])

        assert validate_stage([field], {'code': 'x'}, evaluator) == {}
        assert evaluator.diagnostics.failures_for('code')[0]['phase'] == 'regex'

    def test_required_rule(self, evaluator):
        field = make_field(name='note', validation=[rule('Required', 'Say something.')])

        assert validate_stage([field], {'note': ''}, evaluator) == {'note': 'Say something.'}
        assert validate_stage([field], {'note': 0}, evaluator) == {}

    def test_length_bounds_from_field(self, evaluator):
        field = make_field(name='pin', minLength=4, maxLength=6, validation=[
            rule('MinLength', 'Too short.'),
            rule('MaxLength', 'Too long.'),
        ])

        assert validate_stage([field], {'pin': '123'}, evaluator) == {'pin': 'Too short.'}
        assert validate_stage([field], {'pin': '1234567'}, evaluator) == {'pin': 'Too long.'}
        assert validate_stage([field], {'pin': '12345'}, evaluator) == {}

    def test_length_rules_ignore_non_strings(self, evaluator):
        field = make_field(name='pin', minLength=4, validation=[rule('MinLength')])

        assert validate_stage([field], {'pin': 12}, evaluator) == {}

    def test_value_bounds_from_field(self, evaluator):
        field = make_field(name='weight', min=1, max=100, validation=[
            rule('MinValue', 'Too light.'),
            rule('MaxValue', 'Too heavy.'),
        ])

        assert validate_stage([field], {'weight': '0'}, evaluator) == {'weight': 'Too light.'}
        assert validate_stage([field], {'weight': 101}, evaluator) == {'weight': 'Too heavy.'}
        assert validate_stage([field], {'weight': '50'}, evaluator) == {}

    def test_rule_value_overrides_field_bound(self, evaluator):
        field = make_field(name='containers', min=0, validation=[rule('MinValue', 'At least one.', value=1)])

        assert validate_stage([field], {'containers': 0}, evaluator) == {'containers': 'At least one.'}

    def test_value_rules_skip_empty_and_text(self, evaluator):
        field = make_field(name='weight', max=10, validation=[rule('MaxValue')])

        assert validate_stage([field], {'weight': ''}, evaluator) == {}
        assert validate_stage([field], {'weight': 'heavy'}, evaluator) == {}

    def test_function_rule_expression(self, evaluator):
        field = make_field(name='destination', validation=[
            rule('Function', 'Must differ from origin.', function='fieldValue !== formValue.origin'),
        ])

        errors = validate_stage([field], {'origin': 'Hamburg', 'destination': 'Hamburg'}, evaluator)

        assert errors == {'destination': 'Must differ from origin.'}

    def test_function_rule_sees_whole_tree_inside_group(self, evaluator):
        form = Form.model_validate({
            'name': 'f',
            'stages': [{'name': 's', 'fields': [
                {'name': 'limit', 'defaultValue': 10},
                {'kind': 'group', 'name': 'cargo', 'fields': [
                    {'name': 'weight', 'validation': [
                        rule('Function', 'Over the limit.', function='fieldValue <= formValue.limit'),
                    ]},
                ]},
            ]}],
        })
        values = apply_change(initialize(form), 'cargo.weight', 11)

        errors = validate_stage(flatten(form.stages[0].fields), values, evaluator)

        assert errors == {'cargo.weight': 'Over the limit.'}

    def test_broken_function_rule_passes(self, evaluator):
        field = make_field(name='a', validation=[rule('Function', function='fieldValue +')])

        assert validate_stage([field], {'a': 1}, evaluator) == {}

    def test_unknown_rule_type_passes(self, evaluator):
        field = make_field(name='a', validation=[rule('Telepathy')])

        assert validate_stage([field], {'a': ''}, evaluator) == {}

    def test_last_failing_rule_wins(self, evaluator):
        field = make_field(name='code', validation=[
            rule('MinLength', 'Too short.', value=3),
            rule('Regex', 'Upper case only.', regex='^[A-Z]+$'),
        ])

        assert validate_stage([field], {'code': 'ab'}, evaluator) == {'code': 'Upper case only.'}
        assert validate_stage([field], {'code': 'AB'}, evaluator) == {'code': 'Too short.'}
        assert validate_stage([field], {'code': 'ABC'}, evaluator) == {}

    def test_rules_override_required_message(self, evaluator):
        field = make_field(name='code', required=True, validation=[rule('MinLength', 'Too short.', value=3)])

        assert validate_stage([field], {'code': ''}, evaluator) == {'code': 'Too short.'}


def test_group_errors_use_dotted_paths(shipping_form, evaluator):
    """Nested group errors are keyed group.field."""
    values = apply_change(initialize(shipping_form), 'dimensions.length', 2)

    errors = validate_stage(flatten(shipping_form.stages[1].fields), values, evaluator)

    assert errors == {
        'dimensions.width': 'Width is required.',
        'dimensions.height': 'Height is required.',
    }


def test_hidden_fields_are_validated(evaluator):
    field = make_field(name='secret', isHidden=True, required=True)

    assert validate_stage([field], {'secret': ''}, evaluator) == {'secret': 'Secret is required.'}


def test_visible_errors_suppressed_while_untouched():
    errors = {'email': 'Email is required.'}

    assert visible_errors(errors, 'untouched') == {}
    assert visible_errors(errors, 'incomplete') == errors
    assert visible_errors(errors, 'complete') == errors
