# Constants for recommendation scoring and the query tier cascade.

# Attribute similarity weights (sum = 1.0)
W_TAGS = 0.3
W_COLLECTIONS = 0.25
W_TYPE = 0.2
W_VENDOR = 0.15
W_PRICE = 0.1

# Candidate set sizes kept per signal at precompute time
TOP_K_BOUGHT_TOGETHER = 10
TOP_K_SIMILAR = 20
TOP_K_ALSO_VIEWED = 15

# Merge boosts / caps
BOOST_BOUGHT_TOGETHER = 0.3
BOOST_ALSO_VIEWED = 0.1
ALSO_VIEWED_CAP = 0.8

# Popularity blend
POPULARITY_VIEW_WEIGHT = 0.3
POPULARITY_PURCHASE_WEIGHT = 0.7

# Session tier: how many recent distinct products describe the session
SESSION_RECENT_PRODUCTS = 10

# Fixed tier scores and reasons
SCORE_PERSONALIZED = 0.9
SCORE_SESSION = 0.8
SCORE_POPULAR = 0.4
REASON_PERSONALIZED = "Based on your preferences"
REASON_SESSION = "Based on your browsing"
REASON_POPULAR = "Popular in this store"

# Live-similarity reasons
REASON_TAGS = "Similar product"
REASON_COLLECTIONS = "From the same collection"
REASON_VENDOR = "More from {vendor}"
REASON_TYPE = "Similar {type}"
REASON_DEFAULT = "You might also like"

# Tier names (analytics records, logs)
TIER_PRECOMPUTED = "precomputed"
TIER_PERSONALIZED = "personalized"
TIER_SESSION = "session"
TIER_SIMILARITY = "similarity"
TIER_POPULAR = "popular"
TIER_NONE = "none"

# Upper bound on stored edges per source product
MAX_EDGES_PER_SOURCE = TOP_K_BOUGHT_TOGETHER + TOP_K_SIMILAR + TOP_K_ALSO_VIEWED
