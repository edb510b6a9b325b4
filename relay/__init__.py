"""
WhatsApp to OpenAI Assistants relay.

This package contains:
- settings: configuration and Assistants API header building
- logging_config: shared logging setup
- errors: relay error taxonomy and HTTP error payloads
- storage: session persistence (Redis or in-memory) and the session store
- assistant: HTTP client for the Assistants threads/runs API
- conversation: provisioning, submission, run polling and reply translation
- whatsapp: webhook parsing and outbound delivery
- routes: FastAPI app factory and HTTP endpoints
"""
