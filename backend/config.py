import os
import sys
from pathlib import Path
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')


# ====================================================================
# VALIDAÇÃO DE VARIÁVEIS DE AMBIENTE CRÍTICAS
# ====================================================================
def get_required_env(key: str) -> str:
    """Obter variável de ambiente obrigatória. Falha se não existir."""
    value = os.environ.get(key)
    if not value:
        print(f"❌ ERRO FATAL: Variável de ambiente '{key}' não definida!", file=sys.stderr)
        print(f"   Configure no ficheiro .env ou nas variáveis de ambiente do sistema.", file=sys.stderr)
        sys.exit(1)
    return value


# ====================================================================
# JWT CONFIG (OBRIGATÓRIO)
# ====================================================================
JWT_SECRET = get_required_env('JWT_SECRET')
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = int(os.environ.get('JWT_EXPIRATION_HOURS', '24'))

if 'change-in-production' in JWT_SECRET or JWT_SECRET == 'super-secret-key':
    print("⚠️  AVISO: JWT_SECRET parece ser um valor de exemplo. Altere em produção!", file=sys.stderr)


# ====================================================================
# DATABASE CONFIG (OBRIGATÓRIO)
# ====================================================================
MONGO_URL = get_required_env('MONGO_URL')
DB_NAME = get_required_env('DB_NAME')


# ====================================================================
# CORS CONFIG (FAIL-SECURE)
# ====================================================================
# Formato: "https://domain1.com,https://domain2.com"
# ====================================================================
_cors_env = os.environ.get('CORS_ORIGINS', '').strip().strip('"').strip("'")

if not _cors_env:
    raise ValueError(
        "❌ ERRO FATAL: CORS_ORIGINS não definido!\n"
        "   Exemplo: CORS_ORIGINS='https://imobiliaria.com.br,https://admin.imobiliaria.com.br'"
    )

if _cors_env == '*':
    raise ValueError(
        "❌ ERRO FATAL: CORS_ORIGINS='*' não é permitido!\n"
        "   Configure origens específicas: CORS_ORIGINS='https://imobiliaria.com.br'"
    )


def parse_cors_origins(raw: str):
    """Separa origens aceites (https ou localhost) das rejeitadas."""
    accepted, rejected = [], []
    for origin in raw.split(','):
        origin = origin.strip()
        if not origin:
            continue
        if origin.startswith('https://'):
            accepted.append(origin)
        elif origin.startswith('http://localhost') or origin.startswith('http://127.0.0.1'):
            accepted.append(origin)
        elif origin.startswith('http://'):
            rejected.append(f"{origin} (HTTP não seguro)")
        else:
            rejected.append(f"{origin} (formato inválido)")
    return accepted, rejected


CORS_ORIGINS, _invalid_origins = parse_cors_origins(_cors_env)

if _invalid_origins:
    print(f"⚠️  Origens CORS ignoradas: {', '.join(_invalid_origins)}", file=sys.stderr)

if not CORS_ORIGINS:
    raise ValueError(
        f"❌ ERRO FATAL: Nenhuma origem CORS válida configurada!\n"
        f"   Origens rejeitadas: {', '.join(_invalid_origins) if _invalid_origins else 'nenhuma fornecida'}"
    )

CORS_ALLOW_CREDENTIALS = os.environ.get('CORS_ALLOW_CREDENTIALS', 'true').lower() == 'true'
CORS_ALLOW_METHODS = os.environ.get('CORS_ALLOW_METHODS', 'GET,POST,PUT,DELETE,OPTIONS,PATCH').split(',')
CORS_ALLOW_HEADERS = os.environ.get('CORS_ALLOW_HEADERS', 'Authorization,Content-Type,Accept,Origin,X-Requested-With').split(',')
CORS_MAX_AGE = int(os.environ.get('CORS_MAX_AGE', '600'))


# ====================================================================
# SENTRY CONFIG (OBSERVABILIDADE)
# ====================================================================
# SENTRY_DSN é opcional - se não definido, Sentry fica desactivado
# ====================================================================
SENTRY_DSN = os.environ.get('SENTRY_DSN', '')
SENTRY_ENVIRONMENT = os.environ.get('SENTRY_ENVIRONMENT', 'development')
SENTRY_TRACES_SAMPLE_RATE = float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE', '1.0'))
SENTRY_SEND_DEFAULT_PII = os.environ.get('SENTRY_SEND_DEFAULT_PII', 'false').lower() == 'true'

if not SENTRY_DSN:
    print("⚠️  SENTRY_DSN não configurado - observabilidade desactivada", file=sys.stderr)


# ====================================================================
# SINCRONIZAÇÃO CONTRATO -> IMÓVEL
# ====================================================================
# Tentativas de escrita optimista (campo version) por passagem
PROPERTY_SYNC_VERSION_RETRIES = int(os.environ.get('PROPERTY_SYNC_VERSION_RETRIES', '3'))
# Tentativas de uma entrada da outbox antes de ficar "failed"
PROPERTY_SYNC_MAX_ATTEMPTS = int(os.environ.get('PROPERTY_SYNC_MAX_ATTEMPTS', '5'))
# Intervalo do worker (segundos)
PROPERTY_SYNC_RETRY_INTERVAL = int(os.environ.get('PROPERTY_SYNC_RETRY_INTERVAL', '300'))
# Dias que as entradas resolvidas (done / failed) ficam na outbox
PROPERTY_SYNC_OUTBOX_RETENTION_DAYS = int(os.environ.get('PROPERTY_SYNC_OUTBOX_RETENTION_DAYS', '30'))


# ====================================================================
# CONTRATOS
# ====================================================================
CONTRACT_ADJUSTMENT_PERIOD_DAYS = int(os.environ.get('CONTRACT_ADJUSTMENT_PERIOD_DAYS', '365'))
