# SPDX-License-Identifier: Apache-2.0
"""
fusion_sdk tests

Covers the invocation core (errors, cancellation, retry, throttling,
HTTP execution, streaming), the run layer (events, observers), the model
pipeline and caller functions, and the provider adapters against a mocked
HTTP transport.
"""
