from __future__ import annotations

import argparse
import sys

from .errors import NuclibookError
from .logging_config import setup_logging
from .seed import seed_base
from .services import (
    SectionIn,
    action_log_flat,
    camera_types_flat,
    cameras_flat,
    create_camera_type,
    create_staff,
    create_therapy,
    create_tracer,
    delete_therapy,
    init_db,
    set_therapy_enabled,
    staff_flat,
    staff_roles_flat,
    therapies_flat,
    therapy_flat,
    tracers_flat,
)


def parse_section(value: str) -> SectionIn:
    """Formato: busy|wait:min[-max]  es. busy:10  wait:45-60"""
    try:
        kind, lengths = value.split(":", 1)
        min_s, _, max_s = lengths.partition("-")
        min_length = int(min_s)
        max_length = int(max_s) if max_s else min_length
    except ValueError:
        raise argparse.ArgumentTypeError(f"Sezione non valida: {value!r} (es. busy:10, wait:45-60)")
    if kind not in ("busy", "wait"):
        raise argparse.ArgumentTypeError(f"Tipo sezione non valido: {kind!r} (busy o wait)")
    return SectionIn(busy=kind == "busy", min_length=min_length, max_length=max_length)


def cmd_init(args: argparse.Namespace) -> None:
    init_db()
    seed_base()
    print("DB inizializzato e seed completato.")


def cmd_list(args: argparse.Namespace) -> None:
    if args.entity == "staff":
        for m in staff_flat(enabled_only=not args.all):
            print(f"{m['id']} | {m['username']} | {m['name']} | {m['role']}")
    elif args.entity == "staff-roles":
        for r in staff_roles_flat(enabled_only=not args.all):
            print(f"{r['id']} | {r['label']}")
    elif args.entity == "tracers":
        for t in tracers_flat(enabled_only=not args.all):
            print(f"{t['id']} | {t['name']} ({t['order-time']} giorni)")
    elif args.entity == "camera-types":
        for ct in camera_types_flat(enabled_only=not args.all):
            print(f"{ct['id']} | {ct['label']}")
    elif args.entity == "cameras":
        for c in cameras_flat(enabled_only=not args.all):
            print(f"{c['id']} | stanza {c['room-number']} | {c['camera-type']}")
    elif args.entity == "therapies":
        for t in therapies_flat(enabled_only=not args.all):
            print(f"{t['id']} | {t['name']} | {t['tracer-required-name']} {t['tracer-dose'] or '-'}")
    elif args.entity == "action-log":
        for e in action_log_flat(limit=args.limit):
            print(f"[{e['id']}] {e['when']} | {e['staff']} | azione {e['action-id']} | {e['associated-id'] or '-'} | {e['note'] or ''}")


def cmd_add_staff(args: argparse.Namespace) -> None:
    sid = create_staff(args.actor_id, args.username, args.name, args.role_id)
    print(f"Staff creato: {sid}")


def cmd_add_tracer(args: argparse.Namespace) -> None:
    tid = create_tracer(args.actor_id, args.name, args.order_time)
    print(f"Tracer creato: {tid}")


def cmd_add_camera_type(args: argparse.Namespace) -> None:
    ctid = create_camera_type(args.actor_id, args.label)
    print(f"Tipo camera creato: {ctid}")


def cmd_add_therapy(args: argparse.Namespace) -> None:
    tid = create_therapy(
        args.actor_id,
        args.name,
        tracer_id=args.tracer_id,
        tracer_dose=args.dose,
        camera_type_ids=args.camera_type_id,
        sections=args.section,
        questions=args.question,
    )
    print(f"Terapia creata: {tid}")


def cmd_advice(args: argparse.Namespace) -> None:
    t = therapy_flat(args.therapy_id)
    print(t["advice"])


def cmd_therapy_enabled(args: argparse.Namespace) -> None:
    changed = set_therapy_enabled(args.actor_id, args.therapy_id, args.enabled)
    print("Aggiornata." if changed else "Nessuna modifica.")


def cmd_delete_therapy(args: argparse.Namespace) -> None:
    delete_therapy(args.actor_id, args.therapy_id)
    print("Terapia cancellata.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nuclibook", description="CLI Nuclibook (amministrazione clinica)")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Crea DB e carica seed")
    p_init.set_defaults(func=cmd_init)

    p_list = sub.add_parser("list", help="Lista entità")
    p_list.add_argument(
        "entity", choices=["staff", "staff-roles", "tracers", "camera-types", "cameras", "therapies", "action-log"]
    )
    p_list.add_argument("--all", action="store_true", help="Includi anche le entità disabilitate")
    p_list.add_argument("--limit", type=int, default=50, help="Solo per action-log")
    p_list.set_defaults(func=cmd_list)

    def with_actor(sp: argparse.ArgumentParser, required: bool = True) -> argparse.ArgumentParser:
        sp.add_argument("--actor-id", type=int, required=required, help="ID dello staff che esegue l'azione")
        return sp

    p_staff = with_actor(sub.add_parser("add-staff", help="Crea membro dello staff"), required=False)
    p_staff.add_argument("--username", required=True)
    p_staff.add_argument("--name", required=True)
    p_staff.add_argument("--role-id", type=int, required=True)
    p_staff.set_defaults(func=cmd_add_staff)

    p_tracer = with_actor(sub.add_parser("add-tracer", help="Crea tracer"))
    p_tracer.add_argument("--name", required=True)
    p_tracer.add_argument("--order-time", type=int, required=True, help="Giorni di preavviso per l'ordine")
    p_tracer.set_defaults(func=cmd_add_tracer)

    p_ct = with_actor(sub.add_parser("add-camera-type", help="Crea tipo di camera"))
    p_ct.add_argument("--label", required=True)
    p_ct.set_defaults(func=cmd_add_camera_type)

    p_th = with_actor(sub.add_parser("add-therapy", help="Crea terapia"))
    p_th.add_argument("--name", required=True)
    p_th.add_argument("--tracer-id", type=int, required=True)
    p_th.add_argument("--dose", default=None)
    p_th.add_argument("--camera-type-id", type=int, action="append", default=[])
    p_th.add_argument("--section", type=parse_section, action="append", default=[], help="es. busy:10 wait:45-60")
    p_th.add_argument("--question", action="append", default=[])
    p_th.set_defaults(func=cmd_add_therapy)

    p_adv = sub.add_parser("advice", help="Mostra il consiglio di prenotazione di una terapia")
    p_adv.add_argument("--therapy-id", type=int, required=True)
    p_adv.set_defaults(func=cmd_advice)

    p_en = with_actor(sub.add_parser("enable-therapy", help="Abilita terapia"))
    p_en.add_argument("--therapy-id", type=int, required=True)
    p_en.set_defaults(func=cmd_therapy_enabled, enabled=True)

    p_dis = with_actor(sub.add_parser("disable-therapy", help="Disabilita terapia"))
    p_dis.add_argument("--therapy-id", type=int, required=True)
    p_dis.set_defaults(func=cmd_therapy_enabled, enabled=False)

    p_del = with_actor(sub.add_parser("delete-therapy", help="Cancella terapia"))
    p_del.add_argument("--therapy-id", type=int, required=True)
    p_del.set_defaults(func=cmd_delete_therapy)

    return p


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    init_db()  # garantisce tabelle
    try:
        args.func(args)
    except NuclibookError as e:
        print(f"Errore: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
