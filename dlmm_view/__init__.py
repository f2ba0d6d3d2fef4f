# DLMM View
# Pool data provider → tiered TTL cache → pool data service → FastAPI routes
