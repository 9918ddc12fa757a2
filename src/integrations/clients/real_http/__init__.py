"""
Real HTTP integration clients.

Talk to the partner insurer API over httpx. Non-2xx answers and transport
failures surface as UpstreamError; nothing here retries.

Important:
- Must implement the same interface as the mock clients
- Must return data shaped according to src/integrations/contracts/accident.py
"""
