from django.urls import path
from . import views


urlpatterns = [
    # Catálogo e carrinho
    path('produtos/', views.ProdutosAPIView.as_view(), name='produtos-api'),
    path('carrinho/', views.CarrinhoAPIView.as_view(), name='carrinho-api'),
    path('carrinho/<int:produto_id>/', views.CarrinhoItemAPIView.as_view(), name='carrinho-item-api'),

    # Endereço
    path('cep/', views.CepAPIView.as_view(), name='cep-api'),

    # Checkout PIX
    path('checkout/', views.CheckoutAPIView.as_view(), name='checkout-api'),
    path('checkout/pix/', views.GerarPixAPIView.as_view(), name='checkout-pix-api'),
    path('checkout/pix/codigo/', views.CodigoPixAPIView.as_view(), name='checkout-pix-codigo-api'),
    path('checkout/verificar/', views.VerificarPagamentoAPIView.as_view(), name='checkout-verificar-api'),

    # Administração
    path('saldo/', views.SaldoAPIView.as_view(), name='saldo-api'),
]
