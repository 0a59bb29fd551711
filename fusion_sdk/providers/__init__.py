# fusion_sdk/providers/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Provider adapters. Import the provider subpackage you need, e.g.
`from fusion_sdk.providers.openai import OpenAIChatModel`.
"""
