"""Cross-cutting building blocks shared by every layer of the application.

- **config**: Pydantic Settings with serverless auto-detection
- **exceptions**: Error hierarchy used by the connection layer and the API
- **logging**: Loguru setup with console and JSON formatters
"""
