"""
Custom permission classes for the RentMe marketplace.
"""

from rest_framework import permissions


class IsListingOwnerOrReadOnly(permissions.BasePermission):
    """
    Object-level permission for listings.

    Anyone may read a listing; only its owner may update or delete it.

    Usage:
        class ListingDetailView(APIView):
            permission_classes = [IsAuthenticatedOrReadOnly, IsListingOwnerOrReadOnly]
    """

    message = 'You can only modify your own listings.'

    def has_object_permission(self, request, view, obj):
        """
        Check if user may act on the listing.

        Args:
            request: HTTP request object
            view: View being accessed
            obj: Listing instance

        Returns:
            bool: True for safe methods or when the user owns the listing
        """
        if request.method in permissions.SAFE_METHODS:
            return True

        if request.method == 'DELETE':
            self.message = 'You can only delete your own listings.'
        else:
            self.message = 'You can only edit your own listings.'

        return bool(request.user and request.user.is_authenticated and obj.owner_id == request.user.id)

