"""Shared fixtures for form engine tests."""

import pytest
from formwizard.engine.schema import Form


SHIPPING_FORM = {
    'name': 'Shipping',
    'stages': [
        {
            'name': 'route',
            'fields': [
                {
                    'name': 'country',
                    'inputType': 'select',
                    'options': ['US', 'CA'],
                    'required': True,
                },
                {
                    'name': 'state',
                    'inputType': 'select',
                    'optionsDependentOn': 'country',
                    'options': {
                        'US': ['California', 'Texas'],
                        'CA': ['Ontario', 'Quebec'],
                    },
                },
            ],
        },
        {
            'name': 'cargo',
            'fields': [
                {
                    'kind': 'section',
                    'name': 'measurements',
                    'label': 'Measurements',
                    'fields': [
                        {
                            'kind': 'group',
                            'name': 'dimensions',
                            'fields': [
                                {'name': 'length', 'inputType': 'number', 'required': True},
                                {'name': 'width', 'inputType': 'number', 'required': True},
                                {'name': 'height', 'inputType': 'number', 'required': True},
                            ],
                        },
                    ],
                },
                {
                    'name': 'volume',
                    'inputType': 'number',
                    'valueCalculation': 'values.dimensions.length * values.dimensions.width * values.dimensions.height',
                },
            ],
        },
        {
            'name': 'contact',
            'fields': [
                {'name': 'email', 'inputType': 'email', 'required': True, 'label': 'Email address'},
            ],
        },
    ],
}


@pytest.fixture
def shipping_dict():
    """Raw shipping form document."""
    return SHIPPING_FORM


@pytest.fixture
def shipping_form():
    """Validated shipping form."""
    return Form.model_validate(SHIPPING_FORM)
