#!/usr/bin/env python3
"""
Warg CLI - run the server, supervise it, and drive the shared browser session
"""

import asyncio
import base64
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
import requests

from ..config import load_config
from ..daemon import WargDaemon
from ..errors import ConfigError
from ..logging_config import setup_logging
from ..server import serve as run_server
from .websocket_client import WebSocketClient


@click.group()
@click.option('--ws-url', help='WebSocket server address (default: ws://localhost:<WS_PORT>)')
@click.option('--format', 'output_format', type=click.Choice(['json', 'table']), default='table', help='Output format')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, ws_url: Optional[str], output_format: str, verbose: bool):
    """Warg - remote control for a managed browser session"""
    ctx.ensure_object(dict)
    try:
        config = load_config()
    except ConfigError as e:
        raise click.ClickException(str(e))

    ctx.obj['config'] = config
    ctx.obj['output_format'] = output_format
    ctx.obj['verbose'] = verbose
    ctx.obj['ws_url'] = ws_url or f"ws://localhost:{config.ws_port}"


def _client(ctx) -> WebSocketClient:
    client = ctx.obj.get('ws_client')
    if client is None:
        client = WebSocketClient(ctx.obj['ws_url'])
        ctx.obj['ws_client'] = client
        ctx.call_on_close(client.close)
    return client


# Server
@cli.command()
@click.option('--host', help='Bind address for both servers')
@click.option('--port', type=int, help='HTTP API port')
@click.option('--ws-port', type=int, help='WebSocket port')
@click.option('--headless/--headed', default=None, help='Run Chromium headless')
@click.option('--timeout', type=int, help='Browser timeout in milliseconds')
@click.option('--log-level', help='Logging level')
@click.pass_context
def serve(ctx, host, port, ws_port, headless, timeout, log_level):
    """Run the HTTP API and WebSocket server in the foreground"""
    config = ctx.obj['config'].override(
        host=host,
        port=port,
        ws_port=ws_port,
        browser_headless=headless,
        browser_timeout=timeout,
        log_level=log_level,
    )
    setup_logging(config.log_level, config.log_file)
    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        pass


# Daemon
@cli.group()
def daemon():
    """Server process supervision"""
    pass


@daemon.command('start')
@click.pass_context
def daemon_start(ctx):
    """Start the supervisor (blocks until stopped)"""
    config = ctx.obj['config']
    setup_logging(config.log_level, config.log_file)
    if not WargDaemon(config).start():
        raise click.ClickException("Daemon already running")


@daemon.command('stop')
@click.pass_context
def daemon_stop(ctx):
    """Stop the running supervisor"""
    config = ctx.obj['config']
    setup_logging(config.log_level)
    stopped = WargDaemon(config).stop()
    _output_result(ctx, {'success': stopped, 'message': 'Daemon stopped' if stopped else 'Daemon not running'})


@daemon.command('restart')
@click.pass_context
def daemon_restart(ctx):
    """Stop the supervisor if running, then start it again"""
    config = ctx.obj['config']
    setup_logging(config.log_level, config.log_file)
    WargDaemon(config).restart()


@daemon.command('status')
@click.pass_context
def daemon_status(ctx):
    """Show supervisor status and server health"""
    config = ctx.obj['config']
    status = WargDaemon(config).status()
    status['health'] = _fetch_health(config.port)
    _output_result(ctx, {'success': status['running'], 'data': status})


def _fetch_health(port: int) -> Optional[Dict[str, Any]]:
    try:
        response = requests.get(f"http://127.0.0.1:{port}/api/health", timeout=2)
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError):
        return None


# Browser lifecycle
@cli.group()
def browser():
    """Browser lifecycle commands"""
    pass


def _lifecycle(ctx, message_type: str):
    response = _client(ctx).request(message_type)
    if response.get('type') == 'error':
        result = {'success': False, 'error': response.get('error')}
    else:
        result = {'success': True, 'message': response.get('message', response.get('type'))}
    _output_result(ctx, result)


@browser.command('start')
@click.pass_context
def browser_start(ctx):
    """Launch the browser"""
    _lifecycle(ctx, 'browser_start')


@browser.command('stop')
@click.pass_context
def browser_stop(ctx):
    """Close the browser"""
    _lifecycle(ctx, 'browser_stop')


@browser.command('restart')
@click.pass_context
def browser_restart(ctx):
    """Close and relaunch the browser"""
    _lifecycle(ctx, 'browser_restart')


@cli.command()
@click.pass_context
def status(ctx):
    """Show session status"""
    response = _client(ctx).request('get_status')
    if response.get('type') == 'error':
        _output_result(ctx, {'success': False, 'error': response.get('error')})
    else:
        _output_result(ctx, {'success': True, 'data': response.get('data', {})})


@cli.command()
@click.pass_context
def watch(ctx):
    """Print every message received as an observer (Ctrl-C to stop)"""
    def _print(message: Dict[str, Any]):
        click.echo(json.dumps(message, ensure_ascii=False))

    _client(ctx).listen(_print)


# Browser commands
@cli.group()
def command():
    """Browser commands"""
    pass


@command.command()
@click.argument('url')
@click.pass_context
def navigate(ctx, url: str):
    """Navigate to URL"""
    _output_result(ctx, _client(ctx).send_command('navigate', {'url': url}))


@command.command('click')
@click.argument('selector')
@click.pass_context
def click_element(ctx, selector: str):
    """Click on element"""
    _output_result(ctx, _client(ctx).send_command('click', {'selector': selector}))


@command.command('type')
@click.argument('selector')
@click.argument('text')
@click.pass_context
def type_text(ctx, selector: str, text: str):
    """Type text into element"""
    _output_result(ctx, _client(ctx).send_command('type', {'selector': selector, 'text': text}))


@command.command()
@click.option('--full-page', is_flag=True, help='Capture the full scrollable page')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write the PNG to this file')
@click.pass_context
def screenshot(ctx, full_page: bool, output: Optional[str]):
    """Capture a screenshot"""
    result = _client(ctx).send_command('screenshot', {'fullPage': full_page})
    if output and result.get('success'):
        image = base64.b64decode(result['data']['screenshot'])
        Path(output).write_bytes(image)
        result = {'success': True, 'data': {'path': output, 'bytes': len(image)}}
    _output_result(ctx, result)


@command.command('eval')
@click.argument('script')
@click.pass_context
def evaluate(ctx, script: str):
    """Evaluate JavaScript in the page"""
    _output_result(ctx, _client(ctx).send_command('evaluate', {'script': script}))


@command.command()
@click.pass_context
def reload(ctx):
    """Reload the page"""
    _output_result(ctx, _client(ctx).send_command('reload'))


@command.command()
@click.pass_context
def back(ctx):
    """Go back in history"""
    _output_result(ctx, _client(ctx).send_command('back'))


@command.command()
@click.pass_context
def forward(ctx):
    """Go forward in history"""
    _output_result(ctx, _client(ctx).send_command('forward'))


def _output_result(ctx, result: dict):
    """Print a result"""
    if ctx.obj.get('output_format') == 'json':
        click.echo(json.dumps(result, indent=2, ensure_ascii=False))
    else:
        _output_table(result, ctx.obj.get('verbose', False))


def _output_table(result: dict, verbose: bool = False):
    """Table output"""
    if 'error' in result and not result.get('success'):
        click.echo(f"Error: {result['error']}", err=True)
        return

    if 'success' in result:
        click.echo(f"Status: {'Success' if result['success'] else 'Failed'}")

    if 'message' in result:
        click.echo(f"Message: {result['message']}")

    if 'data' in result:
        data = result['data']
        if isinstance(data, dict):
            _print_dict_item(data, verbose)
        else:
            click.echo(f"Data: {data}")


def _print_dict_item(item: dict, verbose: bool = False, indent: int = 2):
    """Print a dict, one key per line"""
    pad = " " * indent
    for key, value in item.items():
        if isinstance(value, str) and len(value) > 200 and not verbose:
            value = f"{value[:200]}... ({len(value)} chars)"
        if isinstance(value, dict):
            click.echo(f"{pad}{key}:")
            _print_dict_item(value, verbose, indent + 2)
        else:
            click.echo(f"{pad}{key}: {value}")


def main():
    """CLI entry point"""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\nInterrupted", err=True)
        sys.exit(130)
    except (OSError, TimeoutError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
