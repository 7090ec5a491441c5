# reviews/services.py
import logging

from django.db import IntegrityError, transaction
from django.db.models import Avg, Count, F

from catalog.models import Product, ProductVariant
from core.exceptions import AuthorizationError, NotFound, ValidationError
from core.pagination import paginate

from .models import HelpfulRating, Rating

logger = logging.getLogger(__name__)


def _validate_score(value):
    try:
        score = int(value)
    except (TypeError, ValueError):
        raise ValidationError('Rating must be between 1 and 5')
    if score < 1 or score > 5:
        raise ValidationError('Rating must be between 1 and 5')
    return score


def get_rating(rating_id):
    try:
        return Rating.objects.select_related('product', 'user').get(pk=rating_id)
    except (Rating.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Rating not found: {rating_id}")


def create_rating(user, product_id, rating, title='', review='', variant_id=None):
    score = _validate_score(rating)

    try:
        product = Product.objects.get(pk=product_id)
    except (Product.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Product not found: {product_id}")

    variant = None
    if variant_id:
        variant = ProductVariant.objects.filter(pk=variant_id, product=product).first()
        if variant is None:
            raise NotFound(f"Variant {variant_id} not found for product {product_id}")

    new_rating = Rating.objects.create(
        product=product,
        variant=variant,
        user=user,
        user_name=user.display_name(),
        user_email=user.email,
        rating=score,
        title=title or '',
        review=review or '',
    )
    logger.info(f"Rating created: {new_rating.id} for product {product.id} by user {user.pk}")
    return new_rating


def update_rating(rating_id, user, rating=None, title=None, review=None):
    """Only the author may edit a rating; omitted fields are left alone."""
    instance = get_rating(rating_id)
    if instance.user_id != user.pk:
        raise AuthorizationError('You can only update your own ratings')

    if rating is not None:
        instance.rating = _validate_score(rating)
    if title is not None:
        instance.title = title
    if review is not None:
        instance.review = review
    instance.save()

    logger.info(f"Rating updated: {rating_id}")
    return instance


def delete_rating(rating_id, user):
    instance = get_rating(rating_id)
    if instance.user_id != user.pk and not (user.is_staff or user.is_admin):
        raise AuthorizationError('You can only delete your own ratings')
    instance.delete()
    logger.info(f"Rating deleted: {rating_id}")


def toggle_approval(rating_id, is_approved):
    instance = get_rating(rating_id)
    instance.is_approved = is_approved is True or is_approved == 'true'
    instance.save(update_fields=['is_approved', 'updated_at'])
    logger.info(f"Rating approval updated: {rating_id} -> {'approved' if instance.is_approved else 'unapproved'}")
    return instance


def mark_helpful(rating_id, user):
    instance = get_rating(rating_id)
    try:
        with transaction.atomic():
            HelpfulRating.objects.create(rating=instance, user=user)
            Rating.objects.filter(pk=instance.pk).update(helpful_count=F('helpful_count') + 1)
    except IntegrityError:
        raise ValidationError('You have already marked this rating as helpful')

    instance.refresh_from_db(fields=['helpful_count'])
    logger.info(f"Rating marked as helpful: {rating_id} by user: {user.pk}")
    return instance


def remove_helpful(rating_id, user):
    instance = get_rating(rating_id)
    with transaction.atomic():
        deleted, _ = HelpfulRating.objects.filter(rating=instance, user=user).delete()
        if not deleted:
            raise ValidationError('You have not marked this rating as helpful')
        Rating.objects.filter(pk=instance.pk, helpful_count__gt=0).update(helpful_count=F('helpful_count') - 1)

    instance.refresh_from_db(fields=['helpful_count'])
    logger.info(f"Helpful vote removed: {rating_id} by user: {user.pk}")
    return instance


def get_product_ratings(product_id, page=1, limit=10, only_approved=True):
    ratings = Rating.objects.filter(product_id=product_id).select_related('user')
    if only_approved:
        ratings = ratings.filter(is_approved=True)

    average = ratings.aggregate(avg=Avg('rating'))['avg'] or 0
    distribution = {score: 0 for score in range(1, 6)}
    for row in ratings.values('rating').annotate(count=Count('id')).order_by():
        distribution[row['rating']] = row['count']

    page_items, pagination = paginate(ratings.order_by('-created_at'), page, limit)
    return {
        'ratings':             page_items,
        'average_rating':      round(float(average), 2),
        'total_ratings':       pagination['total'],
        'rating_distribution': distribution,
        'pagination':          pagination,
    }


def get_user_ratings(user, page=1, limit=10):
    ratings = Rating.objects.filter(user=user).select_related('product').order_by('-created_at')
    return paginate(ratings, page, limit)
