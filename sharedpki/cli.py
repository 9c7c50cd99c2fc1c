"""
sharedpki CLI - entry point for all operations.

Usage:
    sharedpki status                         # Config + Vault / Step CA reachability
    sharedpki vault init                     # Bootstrap root + intermediate CA and roles
    sharedpki vault issue -d myapp.local     # Server certificate from Vault
    sharedpki vault issue -c user@x.io -r client-cert
    sharedpki vault root-ca                  # Export the root CA
    sharedpki vault roles                    # List roles on the intermediate mount
    sharedpki step init [--start]            # Create Step CA material + ca.json
    sharedpki step issue myapp.local [client]
    sharedpki step root-ca
    sharedpki rotate                         # Renew certificates close to expiry
    sharedpki inspect certs/myapp.local.crt
    sharedpki traefik -o dynamic.yml         # Traefik TLS config for the cert dir
    sharedpki version
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from contextlib import ExitStack
from pathlib import Path

from sharedpki.errors import PKIError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sharedpki",
        description="sharedpki - certificates for the shared services stack (Vault PKI + Step CA).",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("version", help="Show version")
    subparsers.add_parser("status", help="Show configuration and CA reachability")

    # vault
    vault_parser = subparsers.add_parser("vault", help="Vault PKI operations")
    vault_sub = vault_parser.add_subparsers(dest="vault_command")
    v_init = vault_sub.add_parser("init", help="Bootstrap root/intermediate CA and roles")
    v_init.add_argument("-o", "--output-dir", type=Path, help="Where to save root_ca.crt")
    v_init.add_argument("--no-wait", action="store_true", help="Don't wait for Vault readiness")
    v_issue = vault_sub.add_parser("issue", help="Issue a certificate from a role")
    v_issue.add_argument("-d", "--domain", default="", help="Domain name for server certificate")
    v_issue.add_argument("-c", "--common-name", default="", help="Common name for client certificate")
    v_issue.add_argument("-i", "--ip-sans", default="", help="Comma-separated IP addresses for SANs")
    v_issue.add_argument(
        "-r", "--role", default="server-cert", help="server-cert, client-cert or service-cert"
    )
    v_issue.add_argument("-a", "--vault-addr", help="Vault address (default: $VAULT_ADDR)")
    v_issue.add_argument("-t", "--vault-token", help="Vault token (default: $VAULT_TOKEN)")
    v_issue.add_argument("-o", "--output-dir", type=Path, help="Output directory")
    v_issue.add_argument("--ttl", default="8760h", help="Certificate TTL")
    v_root = vault_sub.add_parser("root-ca", help="Export the root CA certificate")
    v_root.add_argument("-o", "--output-dir", type=Path, help="Output directory")
    vault_sub.add_parser("roles", help="List roles on the intermediate mount")

    # step
    step_parser = subparsers.add_parser("step", help="Step CA operations")
    step_sub = step_parser.add_subparsers(dest="step_command")
    s_init = step_sub.add_parser("init", help="Create CA material and config/ca.json")
    s_init.add_argument("--start", action="store_true", help="exec step-ca afterwards")
    s_issue = step_sub.add_parser("issue", help="Server (and optional client) certificate")
    s_issue.add_argument("domain", help="Domain for the server certificate")
    s_issue.add_argument("client", nargs="?", default="", help="Also issue a client certificate")
    s_issue.add_argument("--san", action="append", default=[], help="Extra SAN (repeatable)")
    s_issue.add_argument("-o", "--output-dir", type=Path, help="Output directory")
    s_root = step_sub.add_parser("root-ca", help="Export the root CA certificate")
    s_root.add_argument("-o", "--output-dir", type=Path, help="Output directory")

    # rotate
    rotate_parser = subparsers.add_parser("rotate", help="Renew certificates close to expiry")
    rotate_parser.add_argument("--certs-dir", type=Path, help="Certificate directory")
    rotate_parser.add_argument("--days", type=int, help="Renew when fewer days remain")
    rotate_parser.add_argument("--backend", choices=["step", "vault"], help="Issuing CA")
    rotate_parser.add_argument("--webhook", help="Notification webhook URL")
    rotate_parser.add_argument("--dry-run", action="store_true", help="Report only")

    # inspect
    inspect_parser = subparsers.add_parser("inspect", help="Show certificate details")
    inspect_parser.add_argument("file", type=Path)
    inspect_parser.add_argument("--json", action="store_true", help="JSON output")

    # traefik
    traefik_parser = subparsers.add_parser("traefik", help="Generate Traefik dynamic TLS config")
    traefik_parser.add_argument("--certs-dir", type=Path, help="Certificate directory")
    traefik_parser.add_argument("--mount-path", default="/certs", help="Cert dir inside Traefik")
    traefik_parser.add_argument("--default-cert", help="Stem of the default certificate")
    traefik_parser.add_argument("-o", "--output", type=Path, help="Write YAML here (default: stdout)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )

    if args.version or args.command == "version":
        from sharedpki import __version__

        print(f"sharedpki {__version__}")
        return 0

    handlers = {
        "status": _cmd_status,
        "vault": _cmd_vault,
        "step": _cmd_step,
        "rotate": _cmd_rotate,
        "inspect": _cmd_inspect,
        "traefik": _cmd_traefik,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 0

    try:
        return handler(args)
    except (PKIError, ValueError) as e:
        print(f"Error: {e}")
        return 1


# ── helpers ───────────────────────────────────────────────────


def _certs_dir(args: argparse.Namespace, attr: str = "output_dir") -> Path:
    from sharedpki.config import get_config

    return getattr(args, attr, None) or get_config().certs_dir


def _vault_client(addr: str | None = None, token: str | None = None):
    from dataclasses import replace

    from sharedpki.config import get_config
    from sharedpki.vault.client import VaultClient

    cfg = get_config().vault
    if addr or token:
        cfg = replace(cfg, addr=addr or cfg.addr, token=token or cfg.token)
    return VaultClient.from_config(cfg)


def _print_trust(path: Path) -> None:
    from sharedpki.trust import trust_instructions

    print()
    print("To trust this CA:")
    for line in trust_instructions(path):
        print(f"  {line}")


# ── status ────────────────────────────────────────────────────


def _cmd_status(args: argparse.Namespace) -> int:
    from sharedpki import __version__
    from sharedpki.config import get_config
    from sharedpki.stepca.client import StepCAClient
    from sharedpki.vault.client import VaultClient

    cfg = get_config()
    print(f"sharedpki v{__version__}")
    print()

    print(f"  Vault:       {cfg.vault.addr}")
    client = VaultClient(cfg.vault.addr, cfg.vault.token, verify=not cfg.vault.skip_verify, timeout=3)
    try:
        health = client.health()
        state = "sealed" if health.get("sealed") else "unsealed"
        print(f"               Reachable - v{health.get('version', '?')}, {state}")
    except PKIError as e:
        print(f"               UNREACHABLE - {e}")
    finally:
        client.close()

    print(f"  Step CA:     {cfg.step.ca_url}")
    step = StepCAClient.from_config(cfg.step)
    print(f"               {'Healthy' if step.health() else 'UNREACHABLE'}")

    print()
    print(f"  Certs dir:   {cfg.certs_dir}")
    print(f"  Rotation:    backend={cfg.rotation.backend}, renew < {cfg.rotation.days_before_expiry} days")
    return 0


# ── vault ─────────────────────────────────────────────────────


def _cmd_vault(args: argparse.Namespace) -> int:
    sub = getattr(args, "vault_command", None)
    if sub == "init":
        return _vault_init(args)
    elif sub == "issue":
        return _vault_issue(args)
    elif sub == "root-ca":
        return _vault_root_ca(args)
    elif sub == "roles":
        return _vault_roles(args)
    else:
        print("Usage: sharedpki vault {init|issue|root-ca|roles}")
        return 0


def _vault_init(args: argparse.Namespace) -> int:
    from sharedpki.certs.store import CertificateStore
    from sharedpki.config import get_config
    from sharedpki.vault.bootstrap import PKIBootstrap
    from sharedpki.vault.roles import DEFAULT_ROLES

    cfg = get_config()
    store = CertificateStore(_certs_dir(args))
    with _vault_client() as client:
        result = PKIBootstrap(client, cfg.vault, store).run(wait=not args.no_wait)

    if result.skipped:
        print("PKI already initialized, nothing to do.")
    else:
        print("Vault PKI initialization completed.")
    print()
    print("Roles:")
    for role in DEFAULT_ROLES:
        mark = "+" if role.name in result.created_roles else "="
        print(f"  {mark} {role.name:<13} {role.description}")
    if result.root_ca_path:
        print()
        print(f"Root CA certificate: {result.root_ca_path}")
    return 0


def _vault_issue(args: argparse.Namespace) -> int:
    from sharedpki.certs.store import CertificateStore
    from sharedpki.config import get_config
    from sharedpki.vault.issue import CertificateIssuer, CertificateRequest, issue_to_directory

    cfg = get_config().vault
    request = CertificateRequest(
        role=args.role,
        domain=args.domain,
        common_name=args.common_name,
        ip_sans=tuple(ip.strip() for ip in args.ip_sans.split(",") if ip.strip()),
        ttl=args.ttl,
    )
    request.validate()

    store = CertificateStore(_certs_dir(args))
    store.ensure()
    print(f"Output directory: {store.root}")
    print(f"Certificate type: {request.role}")
    print(f"Certificate name: {request.subject}")

    with _vault_client(args.vault_addr, args.vault_token) as client:
        issuer = CertificateIssuer(client, int_mount=cfg.int_mount, root_mount=cfg.root_mount)
        outcome = issue_to_directory(issuer, store, request)

    files = outcome.files
    print()
    print("Certificate generated successfully.")
    print(f"  Certificate:  {files.cert}")
    print(f"  Private key:  {files.key}")
    print(f"  CA chain:     {files.chain}")
    print(f"  Bundle:       {files.bundle}")
    print(f"  Serial:       {outcome.serial_number}")
    if outcome.root_ca_exported:
        print(f"  Root CA:      {store.root_ca_path}")
    return 0


def _vault_root_ca(args: argparse.Namespace) -> int:
    from sharedpki.certs.store import CertificateStore
    from sharedpki.config import get_config
    from sharedpki.vault.issue import CertificateIssuer

    cfg = get_config().vault
    store = CertificateStore(_certs_dir(args))
    with _vault_client() as client:
        issuer = CertificateIssuer(client, int_mount=cfg.int_mount, root_mount=cfg.root_mount)
        path = store.write_pem(store.root_ca_path.name, issuer.export_root_ca())
    print(f"Root CA exported to: {path}")
    _print_trust(path)
    return 0


def _vault_roles(args: argparse.Namespace) -> int:
    from sharedpki.config import get_config

    cfg = get_config().vault
    with _vault_client() as client:
        roles = client.list(f"{cfg.int_mount}/roles")
    if not roles:
        print(f"No roles on {cfg.int_mount}/. Run 'sharedpki vault init' first.")
        return 1
    for name in roles:
        print(f"  {name}")
    return 0


# ── step ──────────────────────────────────────────────────────


def _cmd_step(args: argparse.Namespace) -> int:
    sub = getattr(args, "step_command", None)
    if sub == "init":
        return _step_init(args)
    elif sub == "issue":
        return _step_issue(args)
    elif sub == "root-ca":
        return _step_root_ca(args)
    else:
        print("Usage: sharedpki step {init|issue|root-ca}")
        return 0


def _step_init(args: argparse.Namespace) -> int:
    from sharedpki.config import get_config
    from sharedpki.stepca.bootstrap import StepCABootstrap

    bootstrap = StepCABootstrap(get_config().step)
    material = bootstrap.run()
    if material.created:
        print("Step CA initialized.")
    else:
        print("Step CA already initialized.")
    print(f"  Root CA:         {material.root_cert}")
    print(f"  Intermediate CA: {material.intermediate_cert}")
    print(f"  Config:          {material.ca_json}")

    if args.start:
        cmd = bootstrap.daemon_command()
        print(f"Starting: {' '.join(cmd)}")
        sys.stdout.flush()
        os.execvp(cmd[0], cmd)
    return 0


def _step_issue(args: argparse.Namespace) -> int:
    from sharedpki.certs.inspect import inspect_file
    from sharedpki.config import get_config
    from sharedpki.stepca.client import StepCAClient

    cfg = get_config().step
    certs_dir = _certs_dir(args)
    client = StepCAClient.from_config(cfg)
    if not client.health():
        print(f"Error: Step CA not reachable at {cfg.ca_url}")
        return 1

    issued = [client.issue_server(args.domain, certs_dir, extra_sans=args.san, not_after=cfg.not_after)]
    if args.client:
        issued.append(client.issue_client(args.client, certs_dir, not_after=cfg.not_after))

    for cert, key in issued:
        info = inspect_file(cert)
        print(f"  Certificate:  {cert}")
        print(f"  Private key:  {key}")
        print(f"  Subject:      {info.subject_cn}")
        print(f"  Valid until:  {info.not_after.isoformat()}")
        if info.sans:
            print(f"  SANs:         {', '.join(info.sans)}")
        print()
    print("Certificates generated successfully.")
    return 0


def _step_root_ca(args: argparse.Namespace) -> int:
    from sharedpki.config import get_config
    from sharedpki.stepca.client import StepCAClient

    cfg = get_config().step
    dest = _certs_dir(args) / "root_ca.crt"
    path = StepCAClient.from_config(cfg).export_root_ca(dest)
    print(f"Root CA: {path}")
    _print_trust(path)
    return 0


# ── rotate ────────────────────────────────────────────────────


def _build_reissuer(backend: str, cfg, stack: ExitStack, *, dry_run: bool = False):
    if backend == "vault":
        from sharedpki.rotation.reissuers import VaultReissuer
        from sharedpki.vault.issue import CertificateIssuer

        client = stack.enter_context(_vault_client())
        issuer = CertificateIssuer(client, int_mount=cfg.vault.int_mount, root_mount=cfg.vault.root_mount)
        return VaultReissuer(issuer, role=cfg.rotation.vault_role)

    from sharedpki.prerequisites import check_step_cli
    from sharedpki.rotation.reissuers import StepReissuer
    from sharedpki.stepca.client import StepCAClient

    if not dry_run:
        step_cli = check_step_cli()
        if not step_cli.ok:
            raise PKIError(f"step CLI not found - {step_cli.hint}")
    return StepReissuer(StepCAClient.from_config(cfg.step), not_after=cfg.step.not_after)


def _cmd_rotate(args: argparse.Namespace) -> int:
    from sharedpki.certs.store import CertificateStore
    from sharedpki.config import get_config
    from sharedpki.notify import NotificationDispatcher, WebhookNotifier
    from sharedpki.rotation.runner import RotationRunner

    cfg = get_config()
    certs_dir = _certs_dir(args, "certs_dir")
    days = args.days if args.days is not None else cfg.rotation.days_before_expiry
    backend = args.backend or cfg.rotation.backend
    webhook = args.webhook or cfg.rotation.webhook_url

    log_file = cfg.rotation.log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATEFMT))
    logging.getLogger("sharedpki").addHandler(file_handler)

    with ExitStack() as stack:
        stack.callback(file_handler.close)
        stack.callback(logging.getLogger("sharedpki").removeHandler, file_handler)

        logger.info("Starting certificate rotation")
        logger.info("Backend: %s", backend)
        logger.info("Certificate directory: %s", certs_dir)
        logger.info("Renew when < %d days remain", days)

        dispatcher = NotificationDispatcher()
        if webhook:
            dispatcher.add(WebhookNotifier(webhook))

        runner = RotationRunner(
            CertificateStore(certs_dir),
            _build_reissuer(backend, cfg, stack, dry_run=args.dry_run),
            days_before_expiry=days,
            dispatcher=dispatcher,
            renew_expired=cfg.rotation.renew_expired,
            dry_run=args.dry_run,
        )
        report = runner.run()

    for result in report.results:
        days_left = "" if result.days is None else f" ({result.days} days)"
        print(f"  {result.outcome.value:<8} {result.name}{days_left}")
    print(report.summary())
    return 0 if report.ok else 1


# ── inspect / traefik ─────────────────────────────────────────


def _cmd_inspect(args: argparse.Namespace) -> int:
    from sharedpki.certs.inspect import inspect_file

    info = inspect_file(args.file)
    if args.json:
        print(json.dumps(info.to_dict(), indent=2))
        return 0
    print(f"  Subject:      {info.subject_cn}")
    print(f"  Issuer:       {info.issuer_cn}")
    print(f"  Serial:       {info.serial}")
    print(f"  Valid from:   {info.not_before.isoformat()}")
    print(f"  Valid until:  {info.not_after.isoformat()} ({info.days_until_expiry()} days)")
    print(f"  CA:           {'yes' if info.is_ca else 'no'}")
    if info.sans:
        print(f"  SANs:         {', '.join(info.sans)}")
    return 0


def _cmd_traefik(args: argparse.Namespace) -> int:
    import yaml

    from sharedpki.certs.store import CertificateStore
    from sharedpki.traefik import build_dynamic_config, write_dynamic_config

    store = CertificateStore(_certs_dir(args, "certs_dir"))
    config = build_dynamic_config(store, args.mount_path, args.default_cert)
    if args.output:
        path = write_dynamic_config(config, args.output)
        print(f"Wrote {path} ({len(config['tls']['certificates'])} certificate(s))")
    else:
        print(yaml.safe_dump(config, sort_keys=False, default_flow_style=False), end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())
