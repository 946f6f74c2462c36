"""
Stage engine services.

Business logic for group stages and playoff seeding:
- Take a session plus tournament/stage ids
- Raise StageEngineError subclasses, never HTTPException
- Own their transactions: each write operation commits once or rolls back
"""
