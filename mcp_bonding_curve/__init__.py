"""
Bonding Curve Package Initialization

This package prices and settles token issuance along an exponential bonding curve, tracks
reserve accounting, decides when a curve has earned graduation to an AMM pool, and performs
that migration with configurable LP token distribution. Curves are exposed to agents through
a Model Context Protocol (MCP) server.

The package includes:
- Overflow-safe fixed-point curve pricing and cost/quantity inversion
- Graduation criteria with a time-based emergency escape hatch
- An idempotent graduation coordinator handing reserves to an external AMM factory
- Four LP distribution strategies
- Tagged-union commands and an MCP server for easy integration
"""
