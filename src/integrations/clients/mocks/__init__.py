"""
Mock integration clients.

These clients return deterministic responses without calling any external API.
They are used when:
- partner staging credentials are not available
- tests need to drive the dispatcher end-to-end

Important:
- Mock clients must follow the SAME interface as the real clients.
- Responses are shaped according to src/integrations/contracts/accident.py

Selected with INTEGRATIONS_MODE=mock (see src/api/handlers.py).
"""
