"""
Backend applicativo Nuclibook (clinica di medicina nucleare).

Struttura:
- config.py         : configurazione da .env / variabili d'ambiente
- logging_config.py : setup del logging
- errors.py         : eccezioni di dominio
- db.py             : engine e sessioni SQLAlchemy
- models.py         : modelli ORM (staff, terapie, tracer, camere, action log)
- store.py          : accesso generico alle entità (get, list, create, delete)
- action_logger.py  : registro delle azioni (audit)
- projections.py    : viste derivate per la visualizzazione delle terapie
- services.py       : casi d'uso (creazione, disabilitazione, liste "flat")
- seed.py           : dati iniziali
- cli.py            : interfaccia a riga di comando
- api_main.py       : API REST (FastAPI)
"""
