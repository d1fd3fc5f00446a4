"""
GeekLogg backend library.

Holds the domain model, Supabase repositories, payment flows and external
catalogue clients. The FastAPI app in `api/` and the CLI scripts in `scripts/`
import from here; nothing in this package imports from them.
"""
