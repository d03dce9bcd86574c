"""
Service layer.

Each service encapsulates the business rules for one domain and is
constructed with the collaborators it needs (the ``Database``, the
blob store, the identity provider), so handlers and tests decide what
those collaborators are.
"""
