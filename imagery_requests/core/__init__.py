"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Named constants, listing limits, header names
- exceptions: Domain exception taxonomy
- ingress: HTTP and Durable Functions transport helpers
"""
