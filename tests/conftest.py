"""
Shared fixtures for the exchange test suite.
"""

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from exchange.models import Listing
from exchange.realtime import get_registry

User = get_user_model()


@pytest.fixture(autouse=True)
def clear_cache():
    """Clear Django cache before each test to reset throttle limits."""
    from django.core.cache import cache
    cache.clear()


@pytest.fixture
def registry():
    """Process-wide connection registry, emptied after each test."""
    live = get_registry()
    live.clear()
    yield live
    live.clear()


@pytest.fixture
def api_client():
    """Provide API client for testing."""
    return APIClient()


@pytest.fixture
def owner(db):
    """Listing owner (user A)."""
    return User.objects.create_user(
        username='owner',
        email='owner@test.com',
        password='TestPass123!',
        first_name='Olivia',
        last_name='Owner',
    )


@pytest.fixture
def proposer(db):
    """User making offers (user B)."""
    return User.objects.create_user(
        username='proposer',
        email='proposer@test.com',
        password='TestPass123!',
        first_name='Paul',
        last_name='Proposer',
    )


@pytest.fixture
def other_user(db):
    """A user with no part in the offer under test."""
    return User.objects.create_user(
        username='bystander',
        email='bystander@test.com',
        password='TestPass123!',
    )


@pytest.fixture
def make_listing(db):
    def _make_listing(owner, **overrides):
        fields = {
            'book_title': 'The Left Hand of Darkness',
            'author': 'Ursula K. Le Guin',
            'category': 'Science Fiction',
            'condition': 'good',
        }
        fields.update(overrides)
        return Listing.objects.create(owner=owner, **fields)
    return _make_listing


@pytest.fixture
def listing(owner, make_listing):
    return make_listing(owner)


@pytest.fixture
def offered_book():
    return {
        'bookTitle': 'Dune',
        'author': 'Frank Herbert',
        'category': 'Science Fiction',
        'condition': 'very_good',
        'images': [],
        'description': 'Paperback, light wear on the spine.',
    }


@pytest.fixture
def auth_client():
    """Return a factory producing an APIClient authenticated with a real JWT."""
    def _auth_client(user):
        client = APIClient()
        token = str(RefreshToken.for_user(user).access_token)
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        return client
    return _auth_client
