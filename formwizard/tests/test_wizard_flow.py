"""End-to-end tests for the freight quote wizard.

These drive the bundled form through FormEngine.run with scripted input,
the same way a person at the console would fill it in.

Test philosophy:
- Use MockRenderer for all display and input
- Validate values and stage statuses, not output formatting details
- Cover navigation commands (:back, :jump N, :quit)
"""

import pytest
from formwizard.engine.context import SET_CONTACT_INFO, AppContext
from formwizard.engine.engine import FormEngine
from formwizard.engine.renderer import MockRenderer
from formwizard.utils.diagnostics import DiagnosticCollector

SHIPMENT_INPUTS = ['2', '1', '1', '1', '']    # CA, Vancouver, DE, Hamburg, keep FOB
CARGO_INPUTS = ['100', '100', '100', '', '500']    # dimensions, keep 1 container, weight


@pytest.fixture
def context():
    """Context with contact details captured on the first page."""
    context = AppContext()
    context.dispatch({'type': SET_CONTACT_INFO, 'payload': {'name': 'Ada', 'company': 'Analytical Freight'}})
    return context


@pytest.fixture
def engine(context):
    return FormEngine.from_name('freight_quote', context=context, diagnostics=DiagnosticCollector())


class TestFreightQuoteRun:
    """Scripted sessions through all three stages."""

    def test_happy_path_submits_quote(self, engine, context):
        renderer = MockRenderer()
        renderer.input_queue = SHIPMENT_INPUTS + CARGO_INPUTS + ['ops@forwarder.example', 'Fragile', 'y']

        values = engine.run(renderer)

        assert values['originCountry'] == 'CA'
        assert values['originPort'] == 'Vancouver'
        assert values['destinationPort'] == 'Hamburg'
        assert values['incoterm'] == 'FOB'
        assert values['cargoDimensions'] == {'length': 100, 'width': 100, 'height': 100}
        assert values['numberOfContainers'] == 1
        assert values['volume'] == 1.0
        assert values['chargeableWeight'] == 500.0
        assert values['acceptTerms'] is True
        assert context.state['quote_form'] == values
        assert engine.stage_status == {'shipment': 'complete', 'cargo': 'complete', 'contact': 'complete'}

    def test_computed_fields_are_shown_not_prompted(self, engine):
        renderer = MockRenderer()
        renderer.input_queue = SHIPMENT_INPUTS + CARGO_INPUTS + [':quit']

        engine.run(renderer)

        assert 'Volume (m3): 1.0' in renderer.displayed
        assert 'Chargeable weight (kg): 500.0' in renderer.displayed
        assert 'Volume (m3)' not in renderer.prompts
        assert 'Number Of Containers *' in renderer.prompts

    def test_custom_rules_block_submission(self, engine, context):
        renderer = MockRenderer()
        renderer.input_queue = (
            SHIPMENT_INPUTS + CARGO_INPUTS
            + ['me@gmail.com', '', 'n']
            + ['ops@forwarder.example', '', 'yes']
        )

        values = engine.run(renderer)

        assert '  - Please use your company email address.' in renderer.displayed
        assert '  - You must accept the terms to request a quote.' in renderer.displayed
        assert values['contactEmail'] == 'ops@forwarder.example'
        assert context.state['quote_form']['contactEmail'] == 'ops@forwarder.example'

    def test_cargo_limits_enforced(self, engine):
        renderer = MockRenderer()
        renderer.input_queue = SHIPMENT_INPUTS + ['100', '100', '100', '60', '40000', ':quit']

        engine.run(renderer)

        assert '  - Quotes cover at most 50 containers.' in renderer.displayed
        assert '  - Weight cannot exceed 30000 kg.' in renderer.displayed
        assert engine.stage_status['cargo'] == 'incomplete'

    def test_origin_port_skipped_until_country_chosen(self, engine):
        renderer = MockRenderer()
        renderer.input_queue = ['', '', '', '', ':quit']

        engine.run(renderer)

        # originPort and destinationPort are disabled without a country
        assert renderer.prompts[:3] == ['Origin Country *', 'Destination Country *', 'Incoterm']


class TestNavigation:
    """Navigation commands typed at a prompt."""

    def test_back_returns_to_previous_stage(self, engine):
        renderer = MockRenderer()
        renderer.input_queue = SHIPMENT_INPUTS + [':back', ':quit']

        engine.run(renderer)

        assert engine.current_stage.name == 'shipment'
        assert engine.value_of('originPort') == 'Vancouver'

    def test_back_on_first_stage(self, engine):
        renderer = MockRenderer()
        renderer.input_queue = [':back', ':quit']

        engine.run(renderer)

        assert 'Already at the first stage.' in renderer.displayed

    def test_jump_to_attempted_stage(self, engine):
        renderer = MockRenderer()
        renderer.input_queue = SHIPMENT_INPUTS + CARGO_INPUTS + [':jump 1', ':jump 3', ':jump 2', ':quit']

        engine.run(renderer)

        # Contact was reached but never submitted, so it cannot be jumped back to
        assert 'Stage 3 is not available yet.' in renderer.displayed
        progress = [c[1] for c in renderer.calls if c[0] == 'show_progress']
        assert progress[-1] == [
            ('shipment', 'complete', False),
            ('cargo', 'complete', True),
            ('contact', 'untouched', False),
        ]
        assert engine.current_stage.name == 'cargo'

    def test_jump_to_untouched_stage_refused(self, engine):
        renderer = MockRenderer()
        renderer.input_queue = [':jump 2', ':quit']

        engine.run(renderer)

        assert 'Stage 2 is not available yet.' in renderer.displayed
        assert engine.current_stage.name == 'shipment'

    def test_unknown_command(self, engine):
        renderer = MockRenderer()
        renderer.input_queue = [':help', ':quit']

        engine.run(renderer)

        assert 'Unknown command: :help' in renderer.displayed


def test_wizard_entry_requires_contact_info():
    """The host only opens the wizard after contact details exist."""
    assert FormEngine.can_enter(AppContext()) is False


def test_bundled_form_has_no_configuration_failures(engine):
    renderer = MockRenderer()
    renderer.input_queue = SHIPMENT_INPUTS + CARGO_INPUTS + ['ops@forwarder.example', '', 'y']

    engine.run(renderer)

    assert engine.diagnostics.get_summary() == "No configuration failures recorded"
