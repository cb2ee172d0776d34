from .auth import User, SessionToken
from .catalog import Brand, Category, Product, ProductImage, ProductColor, ProductSpecification
from .shopping import CartItem, WishlistItem
from .orders import Address, GuestShippingAddress, Order, OrderItem
from .reviews import Review
from .preorders import Preorder

__all__ = [
    'User', 'SessionToken',
    'Brand', 'Category', 'Product', 'ProductImage', 'ProductColor', 'ProductSpecification',
    'CartItem', 'WishlistItem',
    'Address', 'GuestShippingAddress', 'Order', 'OrderItem',
    'Review',
    'Preorder',
]
