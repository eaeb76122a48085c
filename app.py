# app.py
"""
Entrypoint da aplicação.

Uso:
  python app.py migrate --db custeio.db
  python app.py ingrediente add lima --nome "Limão" --unidade-compra kg --razao 10
  python app.py compra lima 2 15.00 --data 2024-01-05
  python app.py venda caipirinha 3 18.00 --plataforma ifood
  python app.py custo-menu caipirinha --gp 0.65
  python app.py rel vendas --inicio 2024-01-01 --por mes
"""

from custeio.adapters.cli import main

if __name__ == "__main__":
    main()
