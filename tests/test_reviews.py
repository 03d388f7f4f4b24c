"""
Tests for the review gate (exchange.reviews), the reputation signal and
the review endpoints.

Test Coverage:
- Pending review computation
- Submission rules (state, party, counterpart, rating range, duplicates)
- Running-mean rating aggregation and pending counters
- Full two-party exchange scenario
"""

from decimal import Decimal

import pytest
from rest_framework import status

from exchange import offers, reviews
from exchange.exceptions import BadRequestError, ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from exchange.models import Notification, Review, TradeOffer
from exchange.signals import fold_rating


@pytest.fixture
def accepted_offer(owner, proposer, listing, offered_book):
    offer = offers.create_offer(proposer, listing.pk, offered_book)
    offers.accept_chat(offer.pk, owner)
    offers.accept_offer(offer.pk, owner)
    return TradeOffer.objects.get(pk=offer.pk)


class TestFoldRating:

    def test_first_rating(self):
        assert fold_rating(Decimal('0.00'), 0, 4) == Decimal('4.00')

    def test_running_mean(self):
        assert fold_rating(Decimal('4.00'), 1, 5) == Decimal('4.50')
        assert fold_rating(Decimal('4.50'), 2, 3) == Decimal('4.00')

    def test_rounds_to_two_places(self):
        assert fold_rating(Decimal('5.00'), 2, 4) == Decimal('4.67')


@pytest.mark.django_db
class TestComputePending:

    def test_both_parties_owe_a_review(self, owner, proposer, accepted_offer):
        owner_pending = reviews.compute_pending(owner)
        proposer_pending = reviews.compute_pending(proposer)

        assert len(owner_pending) == 1
        assert owner_pending[0]['tradeOffer'] == accepted_offer
        assert owner_pending[0]['revieweeId'] == proposer.pk
        assert owner_pending[0]['revieweeName'] == 'Paul Proposer'

        assert proposer_pending[0]['revieweeId'] == owner.pk
        assert proposer_pending[0]['revieweeName'] == 'Olivia Owner'

    def test_submitted_review_clears_pending(self, owner, proposer, accepted_offer):
        reviews.submit(accepted_offer.pk, proposer, owner.pk, 5)

        assert reviews.compute_pending(proposer) == []
        assert len(reviews.compute_pending(owner)) == 1

    def test_deleted_review_is_pending_again(self, owner, proposer, accepted_offer):
        review = reviews.submit(accepted_offer.pk, proposer, owner.pk, 5)
        reviews.submit(accepted_offer.pk, owner, proposer.pk, 4)

        review.delete()

        pending = reviews.compute_pending(proposer)
        assert [item['tradeOffer'].pk for item in pending] == [accepted_offer.pk]
        assert reviews.compute_pending(owner) == []

        accepted_offer.refresh_from_db()
        assert accepted_offer.from_user_reviewed is False
        assert accepted_offer.to_user_reviewed is True
        assert accepted_offer.both_reviewed is False

    def test_pending_ignores_stale_flags(self, owner, proposer, accepted_offer):
        TradeOffer.objects.filter(pk=accepted_offer.pk).update(from_user_reviewed=True)

        assert len(reviews.compute_pending(proposer)) == 1

    def test_unaccepted_offers_not_pending(self, proposer, listing, offered_book):
        offers.create_offer(proposer, listing.pk, offered_book)

        assert reviews.compute_pending(proposer) == []


@pytest.mark.django_db
class TestSubmitReview:

    def test_creates_review_and_updates_reputation(self, owner, proposer, accepted_offer):
        review = reviews.submit(accepted_offer.pk, proposer, owner.pk, 4, comment='Smooth swap')

        assert review.reviewer == proposer
        assert review.reviewee == owner
        assert review.rating == 4
        assert review.comment == 'Smooth swap'

        owner.refresh_from_db()
        assert owner.rating == Decimal('4.00')
        assert owner.total_ratings == 1

        proposer.refresh_from_db()
        assert proposer.pending_reviews == 0

        accepted_offer.refresh_from_db()
        assert accepted_offer.from_user_reviewed is True
        assert accepted_offer.to_user_reviewed is False
        assert accepted_offer.both_reviewed is False

        notification = Notification.objects.get(type=Notification.TYPE_REVIEW_RECEIVED)
        assert notification.recipient == owner
        assert notification.priority == Notification.PRIORITY_LOW
        assert notification.data == {'reviewId': review.pk, 'offerId': accepted_offer.pk}

    def test_missing_offer(self, proposer, owner):
        with pytest.raises(NotFoundError):
            reviews.submit(999999, proposer, owner.pk, 5)

    def test_offer_must_be_accepted(self, owner, proposer, listing, offered_book):
        offer = offers.create_offer(proposer, listing.pk, offered_book)

        with pytest.raises(InvalidStateError):
            reviews.submit(offer.pk, proposer, owner.pk, 5)

    def test_third_party_forbidden(self, owner, other_user, accepted_offer):
        with pytest.raises(ForbiddenError):
            reviews.submit(accepted_offer.pk, other_user, owner.pk, 5)

    def test_reviewee_must_be_counterpart(self, proposer, other_user, accepted_offer):
        with pytest.raises(BadRequestError):
            reviews.submit(accepted_offer.pk, proposer, proposer.pk, 5)

        with pytest.raises(BadRequestError):
            reviews.submit(accepted_offer.pk, proposer, other_user.pk, 5)

    @pytest.mark.parametrize('rating', [0, 6, -1, True, '5'])
    def test_rating_out_of_range(self, owner, proposer, accepted_offer, rating):
        with pytest.raises(BadRequestError):
            reviews.submit(accepted_offer.pk, proposer, owner.pk, rating)

        assert Review.objects.count() == 0

    def test_duplicate_review_conflicts_and_rating_changes_once(self, owner, proposer, accepted_offer):
        reviews.submit(accepted_offer.pk, proposer, owner.pk, 5)

        with pytest.raises(ConflictError):
            reviews.submit(accepted_offer.pk, proposer, owner.pk, 1)

        owner.refresh_from_db()
        assert owner.rating == Decimal('5.00')
        assert owner.total_ratings == 1
        assert Review.objects.count() == 1

    def test_pending_reviews_never_negative(self, owner, proposer, accepted_offer):
        type(proposer).objects.filter(pk=proposer.pk).update(pending_reviews=0)

        reviews.submit(accepted_offer.pk, proposer, owner.pk, 3)

        proposer.refresh_from_db()
        assert proposer.pending_reviews == 0


@pytest.mark.django_db
class TestExchangeScenario:
    """User A lists, user B offers, A accepts, both review each other."""

    def test_full_exchange(self, owner, proposer, listing, offered_book):
        offer = offers.create_offer(proposer, listing.pk, offered_book)
        offers.accept_chat(offer.pk, owner)
        offers.accept_offer(offer.pk, owner)

        reviews.submit(offer.pk, proposer, owner.pk, 5)
        reviews.submit(offer.pk, owner, proposer.pk, 4)

        offer.refresh_from_db()
        assert offer.from_user_reviewed is True
        assert offer.to_user_reviewed is True
        assert offer.both_reviewed is True

        owner.refresh_from_db()
        proposer.refresh_from_db()
        assert owner.rating == Decimal('5.00')
        assert proposer.rating == Decimal('4.00')
        assert owner.pending_reviews == 0
        assert proposer.pending_reviews == 0
        assert owner.successful_trades == 1
        assert proposer.successful_trades == 1

    def test_rating_accumulates_across_trades(self, owner, proposer, other_user, make_listing, offered_book):
        for reviewer, score in ((proposer, 5), (other_user, 2)):
            offer = offers.create_offer(reviewer, make_listing(owner).pk, offered_book)
            offers.accept_chat(offer.pk, owner)
            offers.accept_offer(offer.pk, owner)
            reviews.submit(offer.pk, reviewer, owner.pk, score)

        owner.refresh_from_db()
        assert owner.rating == Decimal('3.50')
        assert owner.total_ratings == 2
        assert owner.pending_reviews == 2


@pytest.mark.django_db
class TestReviewQueries:

    def test_received_excludes_hidden(self, owner, proposer, accepted_offer):
        review = reviews.submit(accepted_offer.pk, proposer, owner.pk, 5)

        assert list(reviews.reviews_received(owner.pk)) == [review]

        Review.objects.filter(pk=review.pk).update(is_visible=False)
        assert list(reviews.reviews_received(owner.pk)) == []

    def test_received_for_unknown_user(self):
        with pytest.raises(NotFoundError):
            reviews.reviews_received(999999)

    def test_given(self, owner, proposer, accepted_offer):
        review = reviews.submit(accepted_offer.pk, proposer, owner.pk, 5)

        assert list(reviews.reviews_given(proposer)) == [review]
        assert list(reviews.reviews_given(owner)) == []


@pytest.mark.django_db
class TestReviewEndpoints:

    def test_pending(self, auth_client, owner, proposer, accepted_offer):
        response = auth_client(proposer).get('/api/reviews/pending/')

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        assert response.data[0]['tradeOffer']['id'] == accepted_offer.pk
        assert response.data[0]['revieweeId'] == owner.pk
        assert response.data[0]['revieweeName'] == 'Olivia Owner'

    def test_create(self, auth_client, owner, proposer, accepted_offer):
        payload = {
            'tradeOfferId': accepted_offer.pk,
            'revieweeId': owner.pk,
            'rating': 5,
            'comment': 'Book exactly as described.',
        }

        response = auth_client(proposer).post('/api/reviews/', payload, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['rating'] == 5
        assert response.data['reviewer']['id'] == proposer.pk
        assert response.data['reviewee']['id'] == owner.pk
        assert response.data['trade_offer'] == accepted_offer.pk

        duplicate = auth_client(proposer).post('/api/reviews/', payload, format='json')
        assert duplicate.status_code == status.HTTP_409_CONFLICT

    def test_invalid_rating(self, auth_client, owner, proposer, accepted_offer):
        response = auth_client(proposer).post('/api/reviews/', {
            'tradeOfferId': accepted_offer.pk,
            'revieweeId': owner.pk,
            'rating': 9,
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'rating' in response.data

    def test_comment_too_long(self, auth_client, owner, proposer, accepted_offer):
        response = auth_client(proposer).post('/api/reviews/', {
            'tradeOfferId': accepted_offer.pk,
            'revieweeId': owner.pk,
            'rating': 4,
            'comment': 'x' * 501,
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_third_party_forbidden(self, auth_client, owner, other_user, accepted_offer):
        response = auth_client(other_user).post('/api/reviews/', {
            'tradeOfferId': accepted_offer.pk,
            'revieweeId': owner.pk,
            'rating': 4,
        }, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_received_and_given(self, auth_client, owner, proposer, other_user, accepted_offer):
        reviews.submit(accepted_offer.pk, proposer, owner.pk, 5)

        received = auth_client(other_user).get(f'/api/reviews/received/{owner.pk}/')
        given = auth_client(proposer).get('/api/reviews/given/')

        assert received.status_code == status.HTTP_200_OK
        assert len(received.data) == 1
        assert received.data[0]['rating'] == 5
        assert len(given.data) == 1

        missing = auth_client(owner).get('/api/reviews/received/999999/')
        assert missing.status_code == status.HTTP_404_NOT_FOUND
