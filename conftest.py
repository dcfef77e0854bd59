# conftest.py
# Configuração global para pytest: adiciona a raiz do projeto ao sys.path para permitir `import svxlogd`
import sys
from pathlib import Path

ROOT_PATH = Path(__file__).parent
if str(ROOT_PATH) not in sys.path:
    sys.path.insert(0, str(ROOT_PATH))
