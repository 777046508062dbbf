"""
VeriForge Enclave Provenance Service
====================================

Turns an untrusted "generate or edit an image" request into a signed
provenance record inside the enclave.
"""

__version__ = "0.3.0"
