import os
import sys
import django
import random
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bookswap_marketplace.settings')
django.setup()

from exchange import conversations, offers, reviews
from exchange.models import Listing, User

fake = Faker()

CATEGORIES = [
    'Fiction', 'Science Fiction', 'Fantasy', 'Mystery', 'Biography',
    'History', 'Science', 'Philosophy', 'Poetry', 'Textbook',
]

CONDITIONS = [choice for choice, _label in Listing.CONDITION_CHOICES]


def fake_book():
    return {
        'bookTitle': fake.sentence(nb_words=random.randint(2, 5)).rstrip('.'),
        'author': fake.name(),
        'isbn': fake.isbn13(separator=''),
        'category': random.choice(CATEGORIES),
        'condition': random.choice(CONDITIONS),
        'images': [],
        'description': fake.sentence(nb_words=12),
        'publisher': fake.company(),
        'publishedYear': random.randint(1950, 2024),
    }


def create_users(num_users=20):
    print(f"Creating {num_users} users...")
    users = []

    for _ in range(num_users):
        email = fake.unique.email()
        username = email.split('@')[0]
        user = User.objects.create_user(
            username=username,
            email=email,
            password='password123',
            first_name=fake.first_name(),
            last_name=fake.last_name(),
        )
        users.append(user)

    print(f"Created {len(users)} users.")
    return users


def create_listings(users):
    print("Creating listings...")
    listings = []

    for user in users:
        # Each user lists 1-3 books
        for _ in range(random.randint(1, 3)):
            book = fake_book()
            listing = Listing.objects.create(
                owner=user,
                book_title=book['bookTitle'],
                author=book['author'],
                isbn=book['isbn'],
                category=book['category'],
                condition=book['condition'],
                description=fake.paragraph(),
            )
            listings.append(listing)

    print(f"Created {len(listings)} listings.")
    return listings


def create_trades(users, listings):
    """
    Drive a share of the listings through the offer lifecycle.

    Every listing receives at most one offer so the seeding never trips the
    one-active-offer rule.
    """
    print("Creating trade offers...")
    counts = {'pending': 0, 'chat_accepted': 0, 'accepted': 0, 'rejected': 0, 'cancelled': 0}

    for listing in random.sample(listings, k=len(listings) // 2):
        proposer = random.choice([u for u in users if u.pk != listing.owner_id])
        owner = listing.owner

        offer = offers.create_offer(proposer, listing.pk, fake_book(), message=fake.sentence())
        outcome = random.choice(['pending', 'chat_accepted', 'accepted', 'accepted', 'rejected', 'cancelled'])

        if outcome == 'rejected':
            offers.reject_offer(offer.pk, owner, response_message='Not interested, sorry.')
        elif outcome == 'cancelled':
            offers.cancel_offer(offer.pk, proposer)
        elif outcome in ('chat_accepted', 'accepted'):
            offer = offers.accept_chat(offer.pk, owner)
            for _ in range(random.randint(1, 4)):
                sender = random.choice([owner, proposer])
                conversations.post_user_message(offer.conversation_id, sender, fake.sentence())

            if outcome == 'accepted':
                offers.accept_offer(offer.pk, owner, response_message='Deal!')
                # 70% chance each party leaves a review
                if random.random() < 0.7:
                    reviews.submit(offer.pk, proposer, owner.pk, random.randint(3, 5), fake.sentence())
                if random.random() < 0.7:
                    reviews.submit(offer.pk, owner, proposer.pk, random.randint(3, 5), fake.sentence())

        counts[outcome] += 1

    print(f"Created offers: {counts}")
    return counts


def main():
    print("Starting database population...")

    users = create_users(num_users=20)
    listings = create_listings(users)
    create_trades(users, listings)

    print("Database population completed successfully!")


if __name__ == '__main__':
    main()
