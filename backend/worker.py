import os
import sys
import logging
import asyncio
import signal

# Configurar logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger("worker")

# Adicionar caminho do backend ao path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from config import PROPERTY_SYNC_RETRY_INTERVAL  # noqa: E402
from services.property_sync import retry_pending_syncs, cleanup_outbox  # noqa: E402

# Flag para paragem graciosa
shutdown_event = asyncio.Event()


async def run_once() -> dict:
    """Uma passagem pela outbox de sincronização de imóveis."""
    summary = await retry_pending_syncs()
    summary["cleaned"] = await cleanup_outbox()
    return summary


async def property_sync_loop(interval: int = PROPERTY_SYNC_RETRY_INTERVAL):
    """
    Loop de repetição das sincronizações contrato -> imóvel que falharam.
    """
    logger.info(f"Worker de sincronização iniciado (intervalo {interval}s)")

    while not shutdown_event.is_set():
        try:
            await run_once()
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error(f"Erro no loop de sincronização: {e}", exc_info=True)

        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass


async def shutdown_async():
    logger.info("Sinal de paragem recebido. A terminar graciosamente...")
    shutdown_event.set()


async def main():
    # Registar handlers de sinais (SIGINT, SIGTERM)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.create_task(shutdown_async()))

    sync_task = asyncio.create_task(property_sync_loop())

    # Aguardar sinal de paragem
    await shutdown_event.wait()

    sync_task.cancel()
    try:
        await sync_task
    except asyncio.CancelledError:
        pass

    logger.info("Worker desligado.")


if __name__ == "__main__":
    asyncio.run(main())
