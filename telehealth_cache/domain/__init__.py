"""
Domain cache adapters built on the cache-aside manager.

- **models.py**: Profile, filter and AI payload models
- **user_cache.py**: UserProfileCache
- **doctor_cache.py**: DoctorCache
- **ai_flows.py**: CachedAIFlows
"""
