"""
Ubuntu System Checkup

Аудит состояния Ubuntu-системы относительно эталона:
- Учётные записи, сессии, сеть, диск
- AppArmor
- Репозитории, обновления, автозапуск
- Настройки браузеров
- Пакеты apt и snap

Usage:
    checkup run
"""

__version__ = "1.0.0"
