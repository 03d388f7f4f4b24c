from decimal import Decimal

import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('rating', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Mean of all review scores received.', max_digits=3, validators=[django.core.validators.MinValueValidator(Decimal('0.00'), message='Rating cannot be negative.'), django.core.validators.MaxValueValidator(Decimal('5.00'), message='Rating cannot exceed 5.00.')], verbose_name='rating')),
                ('total_ratings', models.PositiveIntegerField(default=0, help_text='Number of reviews received.', verbose_name='total ratings')),
                ('total_trades', models.PositiveIntegerField(default=0, help_text='Number of completed exchanges the user took part in.', verbose_name='total trades')),
                ('successful_trades', models.PositiveIntegerField(default=0, help_text='Number of exchanges that ended in an accepted offer.', verbose_name='successful trades')),
                ('pending_reviews', models.PositiveIntegerField(default=0, help_text='Reviews this user still has to submit.', verbose_name='pending reviews')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['email'], name='user_email_idx'),
                    models.Index(fields=['rating'], name='user_rating_idx'),
                ],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Listing',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('book_title', models.CharField(max_length=255, verbose_name='book title')),
                ('author', models.CharField(max_length=255, verbose_name='author')),
                ('isbn', models.CharField(blank=True, default='', max_length=20, verbose_name='ISBN')),
                ('category', models.CharField(max_length=100, verbose_name='category')),
                ('condition', models.CharField(choices=[('new', 'New'), ('very_good', 'Very Good'), ('good', 'Good'), ('fair', 'Fair')], max_length=20, verbose_name='condition')),
                ('description', models.TextField(blank=True, default='', max_length=1000, verbose_name='description')),
                ('status', models.CharField(choices=[('active', 'Active'), ('pending', 'Pending'), ('completed', 'Completed'), ('removed', 'Removed')], default='active', help_text='Availability of the listing', max_length=20, verbose_name='status')),
                ('offer_count', models.PositiveIntegerField(default=0, help_text='Number of offers received', verbose_name='offer count')),
                ('completed_date', models.DateTimeField(blank=True, null=True, verbose_name='completed date')),
                ('version', models.PositiveIntegerField(default=0, help_text='Optimistic concurrency token', verbose_name='version')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('owner', models.ForeignKey(help_text='User offering this book', on_delete=django.db.models.deletion.CASCADE, related_name='listings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'listing',
                'verbose_name_plural': 'listings',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'category'], name='listing_status_category_idx'),
                    models.Index(fields=['owner', 'status'], name='listing_owner_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Conversation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('active', 'Active'), ('ended', 'Ended')], default='active', max_length=10, verbose_name='status')),
                ('end_reason', models.CharField(blank=True, choices=[('offer_accepted', 'Offer accepted'), ('offer_rejected', 'Offer rejected'), ('offer_archived', 'Offer archived'), ('offer_cancelled', 'Offer cancelled')], default='', max_length=20, verbose_name='end reason')),
                ('ended_at', models.DateTimeField(blank=True, null=True, verbose_name='ended at')),
                ('last_message_at', models.DateTimeField(auto_now_add=True, verbose_name='last message at')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('listing', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='conversations', to='exchange.listing')),
                ('participants', models.ManyToManyField(help_text='The two parties of the trade offer', related_name='conversations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'conversation',
                'verbose_name_plural': 'conversations',
                'ordering': ['-last_message_at'],
                'indexes': [
                    models.Index(fields=['status'], name='conversation_status_idx'),
                    models.Index(fields=['last_message_at'], name='conversation_last_msg_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TradeOffer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('offered_book', models.JSONField(default=dict, help_text='Description of the book offered in exchange', verbose_name='offered book')),
                ('message', models.TextField(blank=True, default='', max_length=1000, verbose_name='message')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('chat_accepted', 'Chat Accepted'), ('accepted', 'Accepted'), ('rejected', 'Rejected'), ('cancelled', 'Cancelled')], default='pending', max_length=20, verbose_name='status')),
                ('chat_accepted_date', models.DateTimeField(blank=True, null=True, verbose_name='chat accepted date')),
                ('response_message', models.TextField(blank=True, default='', max_length=1000, verbose_name='response message')),
                ('response_date', models.DateTimeField(blank=True, null=True, verbose_name='response date')),
                ('completed_date', models.DateTimeField(blank=True, null=True, verbose_name='completed date')),
                ('archived_by_user', models.BooleanField(default=False, help_text='Set when the proposer withdrew the offer through archive', verbose_name='archived by user')),
                ('from_user_reviewed', models.BooleanField(default=False)),
                ('to_user_reviewed', models.BooleanField(default=False)),
                ('both_reviewed', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('conversation', models.OneToOneField(blank=True, help_text='Chat opened when the chat stage was accepted', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='trade_offer', to='exchange.conversation')),
                ('from_user', models.ForeignKey(help_text='User proposing the exchange', on_delete=django.db.models.deletion.CASCADE, related_name='offers_sent', to=settings.AUTH_USER_MODEL)),
                ('target_listing', models.ForeignKey(help_text='Listing the offer is made against', on_delete=django.db.models.deletion.CASCADE, related_name='offers', to='exchange.listing')),
                ('to_user', models.ForeignKey(help_text='Owner of the target listing', on_delete=django.db.models.deletion.CASCADE, related_name='offers_received', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'trade offer',
                'verbose_name_plural': 'trade offers',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['from_user', 'status'], name='offer_from_status_idx'),
                    models.Index(fields=['to_user', 'status'], name='offer_to_status_idx'),
                    models.Index(fields=['target_listing', 'status'], name='offer_listing_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status__in', ['pending', 'chat_accepted'])), fields=('target_listing',), name='unique_active_offer_per_listing'),
                ],
            },
        ),
        migrations.AddField(
            model_name='listing',
            name='completed_trade_offer',
            field=models.OneToOneField(blank=True, help_text='Offer that completed this listing', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='completed_listing', to='exchange.tradeoffer'),
        ),
        migrations.CreateModel(
            name='Message',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('content', models.TextField(max_length=2000, verbose_name='content')),
                ('message_type', models.CharField(choices=[('user', 'User'), ('system', 'System')], default='user', max_length=10, verbose_name='message type')),
                ('is_read', models.BooleanField(default=False, verbose_name='is read')),
                ('read_at', models.DateTimeField(blank=True, null=True, verbose_name='read at')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('conversation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages', to='exchange.conversation')),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages_sent', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'message',
                'verbose_name_plural': 'messages',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['conversation', 'created_at'], name='message_conv_created_idx'),
                    models.Index(fields=['conversation', 'is_read'], name='message_conv_read_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('new_offer', 'New offer'), ('offer_chat_accepted', 'Offer chat accepted'), ('offer_accepted', 'Offer accepted'), ('offer_rejected', 'Offer rejected'), ('offer_cancelled', 'Offer cancelled'), ('new_message', 'New message'), ('conversation_ended', 'Conversation ended'), ('review_required', 'Review required'), ('review_received', 'Review received'), ('listing_created', 'Listing created')], max_length=30, verbose_name='type')),
                ('title', models.CharField(max_length=100, verbose_name='title')),
                ('message', models.CharField(max_length=500, verbose_name='message')),
                ('data', models.JSONField(blank=True, default=dict, verbose_name='data')),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High')], default='medium', max_length=10, verbose_name='priority')),
                ('is_read', models.BooleanField(default=False, verbose_name='is read')),
                ('read_at', models.DateTimeField(blank=True, null=True, verbose_name='read at')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
                ('sender', models.ForeignKey(blank=True, help_text='Empty for system notifications', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='notifications_sent', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'notification',
                'verbose_name_plural': 'notifications',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['recipient', 'is_read', 'created_at'], name='notif_recipient_read_idx'),
                    models.Index(fields=['type'], name='notif_type_idx'),
                    models.Index(fields=['created_at'], name='notif_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rating', models.PositiveSmallIntegerField(help_text='Rating from 1 to 5 stars', validators=[django.core.validators.MinValueValidator(1, message='Rating must be at least 1.'), django.core.validators.MaxValueValidator(5, message='Rating must be at most 5.')], verbose_name='rating')),
                ('comment', models.TextField(blank=True, default='', max_length=500, verbose_name='comment')),
                ('is_visible', models.BooleanField(default=True, verbose_name='is visible')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('reviewee', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews_received', to=settings.AUTH_USER_MODEL)),
                ('reviewer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews_given', to=settings.AUTH_USER_MODEL)),
                ('trade_offer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews', to='exchange.tradeoffer')),
            ],
            options={
                'verbose_name': 'review',
                'verbose_name_plural': 'reviews',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['reviewee', 'is_visible'], name='review_reviewee_visible_idx'),
                    models.Index(fields=['reviewer'], name='review_reviewer_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('trade_offer', 'reviewer'), name='unique_review_per_offer_reviewer'),
                ],
            },
        ),
    ]
