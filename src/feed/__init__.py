"""
Feed assembly pipeline.

Submodules:
- models: catalog items, events, ranked items, response schemas
- storage: Supabase and in-memory collaborators
- user_profile, retrieval, vendor_trust, filters, mixer: pipeline stages
- pipeline: FeedOrchestrator composing the stages into named feeds
- events, embeddings, intent_router, integrity, evaluation: supporting services
"""
