# This module handles context delivery
#
#  producer                       POST /v1/context
#     |
#     v
# +------------------------------+
# |      ContextRepository       |
# |------------------------------|
# | context:{id}        (TTL)    |
# | client:{id}:contexts         |   pending index, FIFO capped
# | client:{id}:processed_...    |   delivered index
# +------------------------------+
#     ^
#     |  poll every few seconds
#     |
# +------------------------------+
# |  SubscriptionSession         |   one per open stream
# |  - connected (once)          |
# |  - heartbeat (periodic)      |
# |  - DeliveryScheduler ------> context events
# +------------------------------+
