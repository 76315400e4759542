# SPDX-License-Identifier: Apache-2.0

"""
EcoBite business rules: donation lifecycle, EcoPoints, vouchers, finance
math, geo distance, content filtering and role permissions.

Nothing here touches MongoDB, Redis or the network.
"""
