"""
Webhook Server

Flask application receiving GitHub webhooks. Pull request, review and
pull request comment events schedule a debounced ACL evaluation.
"""

import asyncio
import hashlib
import hmac
import logging
from typing import Optional, Tuple

from flask import Flask, jsonify, request

from . import __version__
from .api import AclReviewAPI
from .config import AppConfig
from .utils.debounce import PullRequestDebouncer


logger = logging.getLogger(__name__)


PULL_REQUEST_ACTIONS = {'opened', 'reopened', 'synchronize', 'edited', 'ready_for_review'}


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Check an ``X-Hub-Signature-256`` header against the request body."""
    if not signature or not signature.startswith('sha256='):
        return False
    expected = hmac.new(secret.encode('utf-8'), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(f"sha256={expected}", signature)


def pull_request_key(event: str, payload: dict) -> Optional[Tuple[str, str, int]]:
    """
    Identify the pull request an event refers to.

    Returns:
        (owner, repo, number), or None when the event is not relevant
    """
    repository = payload.get('repository') or {}
    owner = (repository.get('owner') or {}).get('login')
    repo = repository.get('name')
    if not owner or not repo:
        return None

    if event == 'pull_request':
        if payload.get('action') not in PULL_REQUEST_ACTIONS:
            return None
        return owner, repo, payload['pull_request']['number']
    if event == 'pull_request_review':
        return owner, repo, payload['pull_request']['number']
    if event == 'issue_comment':
        issue = payload.get('issue') or {}
        # comments on plain issues carry no pull_request link
        if not issue.get('pull_request'):
            return None
        return owner, repo, issue['number']
    return None


def create_app(config: Optional[AppConfig] = None, api: Optional[AclReviewAPI] = None) -> Flask:
    """
    Build the webhook application.

    Args:
        config: Application configuration (defaults to the environment)
        api: ACL Review API instance (built from config if omitted)
    """
    config = config or AppConfig.from_env()
    api = api or AclReviewAPI(config)

    def run_evaluation(owner: str, repo: str, number: int) -> None:
        asyncio.run(api.evaluate_pull_request(owner, repo, number))

    debouncer = PullRequestDebouncer(run_evaluation, delay_seconds=config.server.debounce_seconds)

    app = Flask(__name__)
    app.config['DEBOUNCER'] = debouncer

    @app.route('/api/v1/health', methods=['GET'])
    def health_check():
        """Health check endpoint."""
        return jsonify({
            'status': 'healthy',
            'service': 'shipit-bot',
            'version': __version__,
        })

    @app.route('/api/v1/webhooks/github', methods=['POST'])
    def github_webhook():
        """Receive a GitHub webhook delivery."""
        secret = config.server.webhook_secret
        if secret and not verify_signature(secret, request.get_data(), request.headers.get('X-Hub-Signature-256')):
            logger.warning("Rejected webhook with invalid signature")
            return jsonify({'error': 'invalid signature'}), 401

        event = request.headers.get('X-GitHub-Event', '')
        payload = request.get_json(silent=True) or {}
        logger.info(f"Webhook received: {event}.{payload.get('action')}")

        key = pull_request_key(event, payload)
        if key is None:
            return jsonify({'status': 'ignored', 'event': event}), 202

        debouncer.schedule(key, *key)
        owner, repo, number = key
        return jsonify({'status': 'scheduled', 'pull_request': f"{owner}/{repo}#{number}"}), 202

    return app
