"""Core constants: cache key prefixes, TTL, and result source tags.

Single source of truth for cache key structure. The key names are shared
with an existing cache population, so they are reproduced exactly
(including their inconsistent casing).
"""

# Cache key prefixes (entity kind, scoped by id/owner/email)
CACHE_PREFIX_BOOK = "book"
CACHE_PREFIX_USER_ADDRESS = "UserAddress"
CACHE_PREFIX_CART = "cart"
CACHE_PREFIX_CART_ITEM = "cartuser"
CACHE_PREFIX_USER_ORDERS = "UserOrders"
CACHE_PREFIX_USER = "user"
CACHE_PREFIX_WISHLIST_OWNER = "User"
CACHE_SUFFIX_WISHLIST_BOOKS = "WishList:Books"
CACHE_SUFFIX_WISHLIST_COUNT = "WishList:Count"

# Aggregate keys (whole collections, no scope)
CACHE_KEY_ALL_BOOKS = "all_books"
CACHE_KEY_ALL_ADDRESSES = "All_addresses"
CACHE_KEY_ALL_ORDERS = "AllUserOrders"
CACHE_KEY_ALL_USERS = "all_users"

# Delimiter for composite keys
CACHE_KEY_SEP = ":"

# Fixed time-to-live for every cache entry (30 minutes)
CACHE_TTL_SECONDS = 30 * 60

# Bump when a cached payload shape changes; older entries are then treated as corrupt.
CACHE_SCHEMA_VERSION = 1

# Source tags reported by read-through
SOURCE_CACHE = "from cache"
SOURCE_STORE = "from store"
