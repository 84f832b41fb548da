from mcp_bonding_curve.server import main

if __name__ == "__main__":
    main()
