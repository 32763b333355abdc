"""
Anamnesis - durable recall of chain metadata between sessions.
"""
