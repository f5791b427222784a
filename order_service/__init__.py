"""
Order Service — 在庫を引き当てながら注文を作成するサービス
"""
