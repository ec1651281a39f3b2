"""Machine translation of editor texts (Google Translate v2 or OpenAI chat)."""
