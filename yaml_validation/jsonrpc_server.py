#!/usr/bin/env python3
"""
JSON-RPC 2.0 Server for YAMLValidator

Provides a JSON-RPC interface to yaml-validation, enabling usage from any
programming language that can spawn a process and communicate via stdin/stdout.

Protocol: JSON-RPC 2.0 over stdin/stdout (newline-delimited JSON)
Specification: https://www.jsonrpc.org/specification

Usage:
    python -m yaml_validation.jsonrpc_server --ruleset rules.yml [--allow-subs] [--debug]

Example request (stdin):
    {"jsonrpc":"2.0","id":1,"method":"validate","params":{"section":"step1","values":{"age":17}}}

Example response (stdout):
    {"jsonrpc":"2.0","id":1,"result":{"age":"age must be between 18 and 65"}}
"""

import argparse
import json
import signal
import sys
from typing import Any, Dict, Optional

from yaml_validation import YAMLValidator
from yaml_validation.errors import ConfigError, FatalValidationError, UnknownSectionError


class InvalidParams(ValueError):
    """Request parameters are missing or of the wrong type."""


class ValidationJsonRpcServer:
    """JSON-RPC 2.0 server wrapping YAMLValidator API."""

    # JSON-RPC error codes
    ERROR_PARSE = -32700        # Invalid JSON
    ERROR_INVALID_REQUEST = -32600  # Invalid JSON-RPC structure
    ERROR_METHOD_NOT_FOUND = -32601  # Unknown method
    ERROR_INVALID_PARAMS = -32602   # Invalid parameters
    ERROR_INTERNAL = -32000      # Application error (catch-all)
    ERROR_VALIDATION = -32001    # Broken rule set: unknown plugin, disabled sub

    def __init__(self, ruleset, allow_subs: bool = False, debug: bool = False,
                 validator: Optional[YAMLValidator] = None):
        """
        Initialize JSON-RPC server.

        Args:
            ruleset: Rule set path or URI
            allow_subs: Allow `sub` expressions in the rule set
            debug: Enable debug logging to stderr
            validator: Pre-built validator (ruleset and allow_subs are then ignored)

        Raises:
            ConfigError: If the rule set cannot be loaded
        """
        self.validator = validator or YAMLValidator(ruleset, allow_subs=allow_subs)
        self.running = False
        self.debug = debug

        # Method dispatch table
        self.methods = {
            'check': self._handle_check,
            'check_list': self._handle_check_list,
            'validate': self._handle_validate,
            'fieldnames': self._handle_fieldnames,
            'sections': self._handle_sections,
            'message': self._handle_message,
            'promote': self._handle_promote,
            'demote': self._handle_demote,
            'reload': self._handle_reload,
        }

    def _log(self, message: str):
        """Log debug message to stderr (doesn't interfere with JSON-RPC on stdout)."""
        if self.debug:
            sys.stderr.write(f"[DEBUG] {message}\n")
            sys.stderr.flush()

    def start_server(self):
        """
        Start the JSON-RPC server loop.

        Reads requests from stdin, processes them, writes responses to stdout.
        Runs until EOF or stop signal received.
        """
        self.running = True
        self._log("YAMLValidator JSON-RPC server started")

        while self.running:
            try:
                line = sys.stdin.readline()

                if not line:
                    # EOF - clean shutdown
                    self._log("EOF received, shutting down")
                    break

                if not line.strip():
                    continue

                self._log(f"Received: {line.strip()}")

                response = self.handle_request(line)
                self._send_response(response)

            except KeyboardInterrupt:
                self._log("KeyboardInterrupt received, shutting down")
                break

        self._log("Server stopped")

    def stop_server(self):
        """
        Stop the server gracefully.

        Sets running flag to False, causing the main loop to exit.
        """
        self.running = False
        self._log("Stop signal received")

    def handle_request(self, request_json: str) -> Dict[str, Any]:
        """
        Parse and process a JSON-RPC request.

        Args:
            request_json: JSON-RPC request string

        Returns:
            JSON-RPC response dict (success or error)
        """
        try:
            request = json.loads(request_json)
        except json.JSONDecodeError as e:
            return self._error_response(None, self.ERROR_PARSE,
                                        f"Parse error: {e}")

        if not isinstance(request, dict):
            return self._error_response(None, self.ERROR_INVALID_REQUEST,
                                        "Request must be a JSON object")

        request_id = request.get("id")

        if request.get("jsonrpc") != "2.0":
            return self._error_response(request_id, self.ERROR_INVALID_REQUEST,
                                        f"Invalid JSON-RPC version: {request.get('jsonrpc')}")

        method = request.get("method")
        params = request.get("params", {})

        if not method:
            return self._error_response(request_id, self.ERROR_INVALID_REQUEST,
                                        "Missing 'method' field")

        if not isinstance(params, dict):
            return self._error_response(request_id, self.ERROR_INVALID_PARAMS,
                                        f"Params must be an object, got {type(params).__name__}")

        if method not in self.methods:
            return self._error_response(request_id, self.ERROR_METHOD_NOT_FOUND,
                                        f"Method not found: {method}")

        self._log(f"Dispatching method: {method}")
        try:
            result = self.methods[method](params)
        except (InvalidParams, UnknownSectionError) as e:
            return self._error_response(request_id, self.ERROR_INVALID_PARAMS, str(e))
        except FatalValidationError as e:
            return self._error_response(request_id, self.ERROR_VALIDATION, str(e),
                                        {"type": type(e).__name__})
        except ConfigError as e:
            return self._error_response(request_id, self.ERROR_INTERNAL, str(e),
                                        {"type": type(e).__name__})
        except Exception as e:
            self._log(f"Error processing request: {e}")
            return self._error_response(request_id, self.ERROR_INTERNAL,
                                        f"Internal error: {e}")

        return self._success_response(request_id, result)

    # Method handlers - wrap YAMLValidator API

    def _require(self, params: Dict[str, Any], name: str) -> Any:
        if name not in params:
            raise InvalidParams(f"Missing required parameter: {name}")
        return params[name]

    def _handle_check(self, params: Dict[str, Any]) -> Any:
        """Handle 'check' method."""
        field = self._require(params, 'field')
        rule = params.get('rule')
        if rule is not None and not isinstance(rule, dict):
            raise InvalidParams("Parameter 'rule' must be an object")
        return self.validator.check(field, params.get('value'), rule)

    def _handle_check_list(self, params: Dict[str, Any]) -> Any:
        """Handle 'check_list' method."""
        field = self._require(params, 'field')
        values = self._require(params, 'values')
        if not isinstance(values, list):
            raise InvalidParams("Parameter 'values' must be an array")
        return self.validator.check_list(field, values)

    def _handle_validate(self, params: Dict[str, Any]) -> Any:
        """Handle 'validate' method."""
        section = self._require(params, 'section')
        values = params.get('values', {})
        if not isinstance(values, dict):
            raise InvalidParams("Parameter 'values' must be an object")
        return self.validator.validate(section, values)

    def _handle_fieldnames(self, params: Dict[str, Any]) -> Any:
        """Handle 'fieldnames' method."""
        exclude = params.get('exclude')
        if exclude is not None and not isinstance(exclude, list):
            raise InvalidParams("Parameter 'exclude' must be an array")
        return self.validator.fieldnames(params.get('section'), exclude=exclude)

    def _handle_sections(self, params: Dict[str, Any]) -> Any:
        """Handle 'sections' method."""
        return self.validator.sections()

    def _handle_message(self, params: Dict[str, Any]) -> Any:
        """Handle 'message' method."""
        return self.validator.message(self._require(params, 'field'))

    def _handle_promote(self, params: Dict[str, Any]) -> Any:
        """Handle 'promote' method."""
        field = self._require(params, 'field')
        self.validator.promote(field)
        return {"status": "ok", "required": field in self.validator.index.required}

    def _handle_demote(self, params: Dict[str, Any]) -> Any:
        """Handle 'demote' method."""
        field = self._require(params, 'field')
        self.validator.demote(field)
        return {"status": "ok", "required": field in self.validator.index.required}

    def _handle_reload(self, params: Dict[str, Any]) -> Any:
        """Handle 'reload' method."""
        self.validator.reload()
        return {"status": "ok", "message": "Rule set reloaded successfully"}

    # Response formatting

    def _success_response(self, request_id: Any, result: Any) -> Dict[str, Any]:
        """Format successful JSON-RPC response."""
        return {
            "jsonrpc": "2.0",
            "id": request_id,
            "result": result
        }

    def _error_response(self, request_id: Any, code: int, message: str,
                        data: Optional[Any] = None) -> Dict[str, Any]:
        """Format JSON-RPC error response."""
        error = {
            "code": code,
            "message": message
        }
        if data is not None:
            error["data"] = data

        return {
            "jsonrpc": "2.0",
            "id": request_id,
            "error": error
        }

    def _send_response(self, response: Dict[str, Any]):
        """Send JSON-RPC response to stdout."""
        response_json = json.dumps(response, default=str)
        self._log(f"Sending: {response_json}")
        sys.stdout.write(response_json + "\n")
        sys.stdout.flush()


def main(argv=None):
    """Main entry point for JSON-RPC server."""
    parser = argparse.ArgumentParser(
        description="YAMLValidator JSON-RPC 2.0 Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example usage:
  python -m yaml_validation.jsonrpc_server --ruleset rules.yml
  python -m yaml_validation.jsonrpc_server --ruleset rules.yml --debug

Supported methods:
  - check
  - check_list
  - validate
  - fieldnames
  - sections
  - message
  - promote
  - demote
  - reload

Protocol: JSON-RPC 2.0 over stdin/stdout
See: https://www.jsonrpc.org/specification
        """
    )
    parser.add_argument('--ruleset', required=True,
                        help='Rule set path or URI')
    parser.add_argument('--allow-subs', action='store_true',
                        help='Allow sub expressions in the rule set')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging to stderr')

    args = parser.parse_args(argv)

    try:
        server = ValidationJsonRpcServer(args.ruleset, allow_subs=args.allow_subs,
                                         debug=args.debug)
    except ConfigError as e:
        sys.stderr.write(f"Cannot load rule set {args.ruleset}: {e}\n")
        return 1

    # Handle signals for graceful shutdown
    def signal_handler(sig, frame):
        server.stop_server()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    # Start server (blocks until stopped)
    server.start_server()
    return 0


if __name__ == "__main__":
    sys.exit(main())
