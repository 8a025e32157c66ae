"""
This module serves as the package initializer for ``CACSetup.models``.
The model classes in this package encapsulate the data of a provisioning run
(targets, provider library, certificate bundle, run log) and the low-level
collaborators that talk to external tools: the NSS database wrapper, the
``pkcs11.txt`` file and the package manager adapters.
"""
