#!/usr/bin/env python3
"""
shipit-bot Webhook Server

Runs the Flask webhook server that evaluates pull request ACLs.
"""

from shipit_bot.config import get_config
from shipit_bot.server import create_app


if __name__ == '__main__':
    config = get_config()
    app = create_app(config)

    print("Starting shipit-bot webhook server...")
    print(f"Server will be available at: http://{config.server.host}:{config.server.port}")
    print("Endpoints:")
    print("   - Health Check: GET /api/v1/health")
    print("   - GitHub Webhooks: POST /api/v1/webhooks/github")

    app.run(
        host=config.server.host,
        port=config.server.port,
        debug=config.debug
    )
