"""
Contracts (data models).

Request/response shapes for the partner insurer API and the envelopes the
entry points return. Both mock and real HTTP clients parse partner payloads
into these models, so the dispatcher never works with ad-hoc dicts for
partner responses.
"""
